"""Turn raw page-script results into color evidence."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping

from ..crawl.page_scripts import RoleColors, StyleVariables
from ..features.literals import literal_to_color
from ..io.models import Color, DOMColorMap, SourceOrigin

logger = logging.getLogger(__name__)

MAX_STYLE_COLORS = 8

STYLE_NAME_PRIORITIES = (
    "primary",
    "secondary",
    "accent",
    "background",
    "foreground",
    "surface",
    "text",
    "border",
    "muted",
    "card",
)


def style_variable_colors(variables: StyleVariables | Mapping[str, str]) -> list[Color]:
    """Colors of declared custom properties, well-known names first, at most eight."""
    declared = variables.colors if isinstance(variables, StyleVariables) else dict(variables)
    ordered: List[str] = []
    for keyword in STYLE_NAME_PRIORITIES:
        ordered.extend(name for name in declared if keyword in name.lower() and name not in ordered)
    ordered.extend(name for name in declared if name not in ordered)

    colors: list[Color] = []
    for name in ordered:
        color = literal_to_color(declared[name])
        if color is not None and color not in colors:
            colors.append(color)
    return colors[:MAX_STYLE_COLORS]


def dom_color_map(roles: RoleColors | Mapping[str, List[str]]) -> DOMColorMap:
    """Normalise computed role colors into a :class:`DOMColorMap`."""
    raw = roles.values if isinstance(roles, RoleColors) else dict(roles)
    parsed: Dict[SourceOrigin, List[Color]] = {}
    for name, values in raw.items():
        try:
            origin = SourceOrigin(name)
        except ValueError:
            logger.debug("Ignoring unknown role %r", name)
            continue
        if not origin.is_structural:
            continue
        parsed[origin] = [color for color in map(literal_to_color, values) if color is not None]
    return DOMColorMap(parsed)
