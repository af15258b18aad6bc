"""Synthesis of an accessible UI theme from a ranked palette."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, Tuple

from ..io.models import CONTRAST_PAIRS, Color, ThemeColors
from .contrast import (
    TEXT_CONTRAST,
    accessible_foreground,
    contrast_ratio,
    relative_luminance,
)

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY = Color.from_hex("#3B82F6")
BORDER_ON_LIGHT = Color.from_hex("#6B7280")
BORDER_ON_DARK = Color.from_hex("#9CA3AF")


@dataclass(frozen=True, slots=True)
class Skeleton:
    """Fixed neutral tokens for one UI brightness."""

    background: Color
    foreground: Color
    muted: Color
    muted_foreground: Color
    border: Color
    input: Color


LIGHT = Skeleton(
    background=Color.from_hex("#FFFFFF"),
    foreground=Color.from_hex("#111827"),
    muted=Color.from_hex("#F3F4F6"),
    muted_foreground=Color.from_hex("#6B7280"),
    border=Color.from_hex("#E5E7EB"),
    input=Color.from_hex("#E5E7EB"),
)
DARK = Skeleton(
    background=Color.from_hex("#111827"),
    foreground=Color.from_hex("#F9FAFB"),
    muted=Color.from_hex("#374151"),
    muted_foreground=Color.from_hex("#9CA3AF"),
    border=Color.from_hex("#374151"),
    input=Color.from_hex("#374151"),
)


def _as_color(value: Color | str) -> Color:
    return value if isinstance(value, Color) else Color.from_hex(value)


def anchor_colors(palette: Sequence[Color | str]) -> tuple[Color, Color]:
    """Return ``(primary, accent)``: the top two colors, falling back to the default blue."""
    colors = [_as_color(value) for value in palette]
    primary = colors[0] if colors else DEFAULT_PRIMARY
    accent = colors[1] if len(colors) > 1 else primary
    return primary, accent


def generate_theme(palette: Sequence[Color | str]) -> ThemeColors:
    """Assign theme roles from *palette*, then repair any failing contrast pair.

    A dark primary gets a light UI and vice versa. Neutral roles come from a
    fixed light or dark skeleton rather than being blended from the primary.
    """
    primary, _ = anchor_colors(palette)
    skeleton = LIGHT if relative_luminance(primary) < 0.5 else DARK
    theme = ThemeColors(
        background=skeleton.background,
        foreground=skeleton.foreground,
        primary=primary,
        primary_foreground=accessible_foreground(primary),
        muted=skeleton.muted,
        muted_foreground=skeleton.muted_foreground,
        border=skeleton.border,
        input=skeleton.input,
        card=skeleton.background,
        card_foreground=skeleton.foreground,
    )
    return ensure_accessibility(theme)


def _requirements() -> Dict[str, List[Tuple[str, float]]]:
    grouped: Dict[str, List[Tuple[str, float]]] = {}
    for foreground, background, minimum in CONTRAST_PAIRS:
        grouped.setdefault(foreground, []).append((background, minimum))
    return grouped


def contrast_failures(theme: ThemeColors) -> list[tuple[str, str, float]]:
    """Return ``(foreground, background, ratio)`` for every pair below its minimum."""
    failures = []
    for foreground, background, minimum in CONTRAST_PAIRS:
        ratio = contrast_ratio(getattr(theme, foreground), getattr(theme, background))
        if ratio < minimum:
            failures.append((foreground, background, ratio))
    return failures


def ensure_accessibility(theme: ThemeColors) -> ThemeColors:
    """Replace every foreground role that misses its contrast minimum.

    Text roles fall back to black or white; non-text roles such as borders
    fall back to a mid gray chosen by the background's luminance.
    """
    changes: Dict[str, Color] = {}
    for role, requirements in _requirements().items():
        current = getattr(theme, role)
        backgrounds = [getattr(theme, name) for name, _ in requirements]
        if all(
            contrast_ratio(current, getattr(theme, name)) >= minimum
            for name, minimum in requirements
        ):
            continue
        if all(minimum < TEXT_CONTRAST for _, minimum in requirements):
            base = backgrounds[0]
            candidate = BORDER_ON_LIGHT if relative_luminance(base) > 0.5 else BORDER_ON_DARK
            if any(
                contrast_ratio(candidate, getattr(theme, name)) < minimum
                for name, minimum in requirements
            ):
                candidate = accessible_foreground(*backgrounds)
        else:
            candidate = accessible_foreground(*backgrounds)
        logger.debug("Repaired %s contrast: %s -> %s", role, current.hex, candidate.hex)
        changes[role] = candidate
    return replace(theme, **changes) if changes else theme
