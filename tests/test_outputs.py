import json
import re
from datetime import datetime, timezone

from brandtheme.io.models import ExtractionPath, ThemeResult, ThemeSource
from brandtheme.io.outputs import ROLE_CSS_VARIABLES, css_declarations, theme_payload, write_theme
from brandtheme.theme.generator import generate_theme

HSL = re.compile(r"^\d+(\.\d)? \d+(\.\d)?% \d+(\.\d)?%$")


def _result():
    palette = ["#1E3A8A", "#F97316"]
    return ThemeResult(
        palette=palette,
        theme=generate_theme(palette),
        source=ThemeSource.WEBSITE,
        extraction=ExtractionPath.VISION_FIRST,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_theme_payload_shape():
    payload = theme_payload(_result())
    assert payload["version"] == 1
    assert set(payload["colors"]) == set(ROLE_CSS_VARIABLES)
    assert all(HSL.match(value) for value in payload["colors"].values())
    assert payload["colors"]["background"] == "0 0% 100%"
    assert payload["meta"] == {
        "source": "website",
        "extractedPalette": ["#1E3A8A", "#F97316"],
        "createdAt": "2024-05-01T12:00:00+00:00",
        "extraction": "vision-first",
    }


def test_css_declarations():
    css = css_declarations(_result().theme)
    assert css.startswith(":root {\n")
    assert "  --theme-bg: 0 0% 100%;\n" in css
    assert css.count("--theme-") == 10
    assert css.endswith("}\n")
    assert css_declarations(_result().theme, ".brand").startswith(".brand {")


def test_write_theme(tmp_path):
    path = write_theme(tmp_path / "nested" / "site.theme.json", _result())
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == theme_payload(_result())
