from brandtheme.crawl.page_scripts import (
    MAX_ROLE_VALUES,
    ExtractionScript,
    RoleColors,
    StyleVariables,
    parse_result,
    script_source,
)
from brandtheme.extract.signals import MAX_STYLE_COLORS, dom_color_map, style_variable_colors
from brandtheme.io.models import Color, SourceOrigin


def test_script_sources_are_fixed_and_read_only():
    roles = script_source(ExtractionScript.ROLE_COLORS)
    assert '"call-to-action"' in roles
    assert "getComputedStyle" in roles
    style = script_source("style-variables")
    assert "cssRules" in style
    for source in (roles, style):
        assert "innerHTML =" not in source
        assert "setAttribute" not in source
        assert "%(" not in source


def test_parse_style_variables_shape():
    parsed = parse_result(
        ExtractionScript.STYLE_VARIABLES,
        {"found": True, "colors": {"--brand": " #ff0000 ", "color": "#00ff00", "--empty": "", "--n": 3}},
    )
    assert isinstance(parsed, StyleVariables)
    assert parsed.found
    assert parsed.colors == {"--brand": "#ff0000"}
    assert parse_result(ExtractionScript.STYLE_VARIABLES, None) == StyleVariables()
    assert parse_result(ExtractionScript.STYLE_VARIABLES, {"colors": []}) == StyleVariables()


def test_parse_role_colors_shape():
    raw = {
        "logo": ["rgb(255, 0, 0)", 5, None, "rgb(0, 0, 255)"],
        "accent": "not a list",
        "call-to-action": ["#111"] * 9,
        "bogus": ["#fff"],
    }
    parsed = parse_result(ExtractionScript.ROLE_COLORS, raw)
    assert isinstance(parsed, RoleColors)
    assert parsed.values["logo"] == ["rgb(255, 0, 0)", "rgb(0, 0, 255)"]
    assert parsed.values["accent"] == []
    assert len(parsed.values["call-to-action"]) == MAX_ROLE_VALUES
    assert "bogus" not in parsed.values
    assert parse_result(ExtractionScript.ROLE_COLORS, "oops").values["heading"] == []


def test_style_variables_ordered_by_name_priority():
    variables = StyleVariables(
        found=True,
        colors={
            "--zeta": "#00ff00",
            "--surface-2": "rgb(10, 20, 30)",
            "--brand-primary": "#ff0000",
            "--overlay": "transparent",
            "--accent": "hsl(240, 100%, 50%)",
            "--broken": "var(--x)",
        },
    )
    assert style_variable_colors(variables) == [
        Color(255, 0, 0),
        Color(0, 0, 255),
        Color(10, 20, 30),
        Color(0, 255, 0),
    ]


def test_style_variables_are_deduplicated_and_capped():
    colors = {f"--c{i}": f"rgb({i * 10}, 0, 0)" for i in range(12)}
    colors["--primary"] = "rgb(0, 0, 0)"
    result = style_variable_colors(colors)
    assert len(result) == MAX_STYLE_COLORS
    assert result[0] == Color(0, 0, 0)
    assert len(set(result)) == len(result)


def test_dom_color_map_parses_and_drops_transparent():
    dom = dom_color_map(
        {
            "logo": ["rgb(255, 0, 0)", "rgba(0, 0, 0, 0)", "rgb(255, 0, 0)"],
            "accent": ["not a color"],
            "navigation": ["#1D4ED8"],
            "bogus": ["#FFFFFF"],
        }
    )
    assert dom.get(SourceOrigin.LOGO) == [Color(255, 0, 0)]
    assert dom.get(SourceOrigin.ACCENT) == []
    assert dom.get(SourceOrigin.NAVIGATION) == [Color.from_hex("#1D4ED8")]
    assert dom.flatten() == [Color(255, 0, 0), Color.from_hex("#1D4ED8")]
    assert dom_color_map(RoleColors()).is_empty()
