import pytest

from brandtheme.group.fusion import (
    INJECTION_WEIGHT,
    MAX_PALETTE,
    filter_grayscale,
    fuse,
    fuse_structural,
    group_similar,
    is_grayscale_or_extreme,
    match_accuracy,
    palette_hexes,
    rank,
    semantic_boost,
)
from brandtheme.io.models import Color, ColorSource, ColorWithArea, DOMColorMap, SourceOrigin

RED = Color.from_hex("#FF0000")
GREEN = Color.from_hex("#00FF00")
BLUE = Color.from_hex("#1D4ED8")
ORANGE = Color.from_hex("#F97316")


def _area(hex_value, area):
    return ColorWithArea(Color.from_hex(hex_value), area)


@pytest.mark.parametrize("hex_value", ["#ffffff", "#000000", "#808080"])
def test_grayscale_and_extremes_are_excluded(hex_value):
    assert is_grayscale_or_extreme(Color.from_hex(hex_value))


@pytest.mark.parametrize("hex_value", ["#ff0000", "#00ff00"])
def test_saturated_colors_are_retained(hex_value):
    assert not is_grayscale_or_extreme(Color.from_hex(hex_value))


def test_filter_grayscale_keeps_order():
    colors = [_area("#ffffff", 0.6), _area("#ff0000", 0.3), _area("#808080", 0.05), _area("#00ff00", 0.05)]
    assert [item.hex for item in filter_grayscale(colors)] == ["#FF0000", "#00FF00"]


def test_semantic_boost_prefers_strongest_nearby_origin():
    dom = DOMColorMap({SourceOrigin.LOGO: [RED], SourceOrigin.NAVIGATION: [RED]})
    assert semantic_boost(RED, dom, []) == (1.5, SourceOrigin.LOGO)
    assert semantic_boost(BLUE, dom, [BLUE]) == (1.1, SourceOrigin.STYLE_VARIABLE)
    assert semantic_boost(GREEN, dom, []) == (1.0, SourceOrigin.PIXEL)


def test_similar_colors_share_a_group():
    sources = [
        ColorSource(RED, SourceOrigin.PIXEL, 0.4),
        ColorSource(Color(250, 5, 5), SourceOrigin.PIXEL, 0.2),
        ColorSource(BLUE, SourceOrigin.PIXEL, 0.1),
    ]
    groups = group_similar(sources)
    assert [len(group) for group in groups] == [2, 1]


def test_rank_breaks_ties_by_origin_priority():
    ranked = rank(
        [
            ColorSource(RED, SourceOrigin.PIXEL, 0.5),
            ColorSource(BLUE, SourceOrigin.LOGO, 0.5),
            ColorSource(Color(252, 2, 2), SourceOrigin.ACCENT, 0.5),
        ]
    )
    assert [(s.color, s.origin) for s in ranked] == [
        (BLUE, SourceOrigin.LOGO),
        (Color(252, 2, 2), SourceOrigin.ACCENT),
    ]


def test_fuse_weights_area_by_semantic_boost():
    pixels = [_area("#FFFFFF", 0.5), _area("#1D4ED8", 0.3), _area("#16A34A", 0.2)]
    dom = DOMColorMap({SourceOrigin.LOGO: [BLUE]})
    fused = fuse(pixels, dom, [])
    assert fused[0].color == BLUE
    assert fused[0].origin is SourceOrigin.LOGO
    assert fused[0].weight == pytest.approx(0.45)
    assert "#FFFFFF" not in palette_hexes(fused)


def test_fuse_injects_missing_call_to_action_color():
    pixels = [_area("#1D4ED8", 0.7), _area("#16A34A", 0.3)]
    dom = DOMColorMap({SourceOrigin.CALL_TO_ACTION: [ORANGE, Color.from_hex("#FFFFFF")]})
    fused = fuse(pixels, dom, [])
    injected = [s for s in fused if s.color == ORANGE]
    assert injected and injected[0].weight == INJECTION_WEIGHT
    assert injected[0].origin is SourceOrigin.CALL_TO_ACTION
    assert Color.from_hex("#FFFFFF") not in [s.color for s in fused]


def test_fuse_does_not_inject_colors_already_seen():
    pixels = [_area("#F97316", 0.6), _area("#1D4ED8", 0.4)]
    dom = DOMColorMap({SourceOrigin.ACCENT: [Color(245, 118, 25)]})
    fused = fuse(pixels, dom, [])
    assert len(fused) == 2


def test_fuse_is_sorted_and_capped():
    hexes = [
        "#E11D48", "#EA580C", "#CA8A04", "#65A30D", "#059669", "#0891B2",
        "#2563EB", "#7C3AED", "#C026D3", "#DB2777", "#4F46E5", "#0D9488",
    ]
    pixels = [_area(value, (i + 1) / 78) for i, value in enumerate(hexes)]
    fused = fuse(pixels, DOMColorMap.empty(), [])
    assert len(fused) <= MAX_PALETTE
    weights = [s.weight for s in fused]
    assert weights == sorted(weights, reverse=True)


def test_fuse_structural_ranks_by_origin_weight():
    dom = DOMColorMap(
        {
            SourceOrigin.NAVIGATION: [GREEN],
            SourceOrigin.LOGO: [RED],
            SourceOrigin.CALL_TO_ACTION: [ORANGE],
        }
    )
    fused = fuse_structural(dom, [BLUE])
    assert palette_hexes(fused) == ["#FF0000", "#F97316", "#00FF00", "#1D4ED8"]
    assert fuse_structural(DOMColorMap.empty(), []) == []


def test_match_accuracy():
    report = match_accuracy([RED, BLUE], [Color(254, 0, 0), GREEN])
    assert report.matches == 1
    assert report.total == 2
    assert report.accuracy == 0.5
    assert match_accuracy([RED], []).accuracy == 0.0
