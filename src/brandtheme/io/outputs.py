"""Output helpers for persisting extracted themes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from ..theme.contrast import hsl_string
from .models import THEME_ROLES, ThemeColors, ThemeResult

THEME_VERSION = 1

ROLE_CSS_VARIABLES: Dict[str, str] = {
    "background": "--theme-bg",
    "foreground": "--theme-fg",
    "primary": "--theme-primary",
    "primary_foreground": "--theme-primary-fg",
    "muted": "--theme-muted",
    "muted_foreground": "--theme-muted-fg",
    "border": "--theme-border",
    "input": "--theme-input",
    "card": "--theme-card",
    "card_foreground": "--theme-card-fg",
}


def theme_colors_payload(theme: ThemeColors) -> dict[str, str]:
    """Render every role as an ``"H S% L%"`` string."""
    return {role: hsl_string(getattr(theme, role)) for role in THEME_ROLES}


def theme_payload(result: ThemeResult) -> dict[str, Any]:
    """Return the versioned JSON document stored for *result*."""
    return {
        "version": THEME_VERSION,
        "colors": theme_colors_payload(result.theme),
        "meta": {
            "source": result.source.value,
            "extractedPalette": list(result.palette),
            "createdAt": result.created_at.isoformat(),
            "extraction": result.extraction.value,
        },
    }


def css_declarations(theme: ThemeColors, selector: str = ":root") -> str:
    """Render *theme* as a block of CSS custom properties."""
    colors = theme_colors_payload(theme)
    lines = [f"  {ROLE_CSS_VARIABLES[role]}: {colors[role]};" for role in THEME_ROLES]
    return "\n".join([f"{selector} {{", *lines, "}"]) + "\n"


def write_theme(path: Path, result: ThemeResult) -> Path:
    """Write the theme payload for *result* to *path* as JSON and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(theme_payload(result), indent=2), encoding="utf-8")
    return path
