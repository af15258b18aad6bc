"""Fusion of pixel, style-variable and role-tagged DOM color evidence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

from ..features.oklab import perceptual_distance
from ..io.models import (
    Color,
    ColorSource,
    ColorWithArea,
    DOMColorMap,
    SourceOrigin,
)

logger = logging.getLogger(__name__)

BASE_WEIGHTS: Dict[SourceOrigin, float] = {
    SourceOrigin.LOGO: 1.0,
    SourceOrigin.CALL_TO_ACTION: 0.9,
    SourceOrigin.ACCENT: 0.8,
    SourceOrigin.HEADING: 0.7,
    SourceOrigin.NAVIGATION: 0.6,
    SourceOrigin.STYLE_VARIABLE: 0.5,
    SourceOrigin.PIXEL: 0.3,
}

SEMANTIC_BOOST: Dict[SourceOrigin, float] = {
    SourceOrigin.LOGO: 1.5,
    SourceOrigin.CALL_TO_ACTION: 1.4,
    SourceOrigin.ACCENT: 1.3,
    SourceOrigin.HEADING: 1.2,
    SourceOrigin.NAVIGATION: 1.1,
    SourceOrigin.STYLE_VARIABLE: 1.1,
}

ORIGIN_PRIORITY: Dict[SourceOrigin, int] = {
    SourceOrigin.LOGO: 6,
    SourceOrigin.CALL_TO_ACTION: 5,
    SourceOrigin.ACCENT: 4,
    SourceOrigin.HEADING: 3,
    SourceOrigin.NAVIGATION: 2,
    SourceOrigin.STYLE_VARIABLE: 1,
    SourceOrigin.PIXEL: 0,
}

SIMILAR_RGB_DISTANCE = 30.0
PERCEPTUAL_MATCH = 10.0
INJECTION_WEIGHT = 0.08
MAX_PALETTE = 8

_INJECTED_ORIGINS = (SourceOrigin.CALL_TO_ACTION, SourceOrigin.ACCENT)


def is_grayscale_or_extreme(color: Color) -> bool:
    """Return ``True`` for colors that make poor theme anchors.

    That is HSL lightness under 10% or over 90%, or HSL saturation under 12%.
    """
    high = max(color.rgb)
    low = min(color.rgb)
    lightness = (high + low) / 510.0
    if lightness > 0.90 or lightness < 0.10:
        return True
    spread = high - low
    if spread == 0:
        return True
    denominator = 255.0 * (1.0 - abs(2.0 * lightness - 1.0))
    saturation = spread / denominator if denominator > 0 else 0.0
    return saturation < 0.12


def filter_grayscale(colors: Iterable[ColorWithArea]) -> list[ColorWithArea]:
    return [item for item in colors if not is_grayscale_or_extreme(item.color)]


def semantic_boost(
    color: Color,
    dom_colors: DOMColorMap,
    style_colors: Sequence[Color],
) -> tuple[float, SourceOrigin]:
    """Return the strongest multiplier earned by a nearby structural or declared color."""
    best = (1.0, SourceOrigin.PIXEL)
    candidates: list[tuple[SourceOrigin, Sequence[Color]]] = list(dom_colors.items())
    candidates.append((SourceOrigin.STYLE_VARIABLE, style_colors))
    for origin, colors in candidates:
        boost = SEMANTIC_BOOST[origin]
        if boost <= best[0]:
            continue
        if any(perceptual_distance(color, other) < PERCEPTUAL_MATCH for other in colors):
            best = (boost, origin)
    return best


def group_similar(sources: Sequence[ColorSource]) -> list[list[ColorSource]]:
    """Group *sources* greedily: each ungrouped color collects later colors within RGB distance 30."""
    groups: list[list[ColorSource]] = []
    taken = [False] * len(sources)
    for i, seed in enumerate(sources):
        if taken[i]:
            continue
        taken[i] = True
        group = [seed]
        for j in range(i + 1, len(sources)):
            if taken[j]:
                continue
            if seed.color.distance(sources[j].color) < SIMILAR_RGB_DISTANCE:
                group.append(sources[j])
                taken[j] = True
        groups.append(group)
    return groups


def _rank_key(source: ColorSource) -> tuple[float, int]:
    return (-source.weight, -ORIGIN_PRIORITY[source.origin])


def rank(sources: Sequence[ColorSource], limit: int = MAX_PALETTE) -> list[ColorSource]:
    """Keep the strongest member of each similar-color group, best first."""
    survivors = [min(group, key=_rank_key) for group in group_similar(sources)]
    return sorted(survivors, key=_rank_key)[:limit]


def fuse_structural(
    dom_colors: DOMColorMap,
    style_colors: Sequence[Color],
    pixel_colors: Sequence[Color] = (),
) -> list[ColorSource]:
    """Rank colors by the trustworthiness of where they were observed.

    Used when no area-weighted pixel evidence is available.
    """
    sources: list[ColorSource] = []
    for origin, colors in dom_colors.items():
        sources.extend(ColorSource(color, origin, BASE_WEIGHTS[origin]) for color in colors)
    sources.extend(
        ColorSource(color, SourceOrigin.STYLE_VARIABLE, BASE_WEIGHTS[SourceOrigin.STYLE_VARIABLE])
        for color in style_colors
    )
    sources.extend(
        ColorSource(color, SourceOrigin.PIXEL, BASE_WEIGHTS[SourceOrigin.PIXEL])
        for color in pixel_colors
    )
    return rank(sources)


def fuse(
    pixel_colors: Sequence[ColorWithArea],
    dom_colors: DOMColorMap,
    style_colors: Sequence[Color],
) -> list[ColorSource]:
    """Rank area-weighted pixel colors, cross-validated against page structure.

    Each non-neutral pixel color scores its area share times the multiplier of
    the strongest structural or declared color within perceptual distance 10.
    Call-to-action and accent colors with no similar pixel color are injected
    at a small fixed weight so small brand-critical elements can still rank.
    """
    scored: list[ColorSource] = []
    for item in filter_grayscale(pixel_colors):
        boost, origin = semantic_boost(item.color, dom_colors, style_colors)
        scored.append(ColorSource(item.color, origin, item.area * boost))

    visual = list(scored)
    for origin in _INJECTED_ORIGINS:
        for color in dom_colors.get(origin):
            if is_grayscale_or_extreme(color):
                continue
            if any(color.distance(other.color) < SIMILAR_RGB_DISTANCE for other in visual):
                continue
            logger.debug("Injecting %s color %s missing from pixels", origin.value, color.hex)
            scored.append(ColorSource(color, origin, INJECTION_WEIGHT))

    return rank(scored)


def palette_hexes(sources: Iterable[ColorSource]) -> list[str]:
    return [source.hex for source in sources]


@dataclass(frozen=True, slots=True)
class AccuracyReport:
    matches: int
    total: int

    @property
    def accuracy(self) -> float:
        return self.matches / self.total if self.total else 0.0


def match_accuracy(
    extracted: Sequence[Color],
    expected: Sequence[Color],
    threshold: float = PERCEPTUAL_MATCH,
) -> AccuracyReport:
    """Count expected brand colors that have a perceptual match in *extracted*."""
    matches = sum(
        1
        for wanted in expected
        if any(perceptual_distance(wanted, found) < threshold for found in extracted)
    )
    return AccuracyReport(matches=matches, total=len(expected))

