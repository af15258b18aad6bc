"""WCAG 2.1 luminance and contrast helpers."""

from __future__ import annotations

from ..io.models import Color

BLACK = Color(0, 0, 0)
WHITE = Color(255, 255, 255)

TEXT_CONTRAST = 4.5
UI_CONTRAST = 3.0


def _linear(channel: int) -> float:
    c = channel / 255.0
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(color: Color) -> float:
    """Relative luminance of *color* in [0, 1]."""
    return 0.2126 * _linear(color.r) + 0.7152 * _linear(color.g) + 0.0722 * _linear(color.b)


def contrast_ratio(first: Color, second: Color) -> float:
    """WCAG contrast ratio between two colors, from 1 to 21."""
    lum1 = relative_luminance(first)
    lum2 = relative_luminance(second)
    lighter, darker = max(lum1, lum2), min(lum1, lum2)
    return (lighter + 0.05) / (darker + 0.05)


def accessible_foreground(*backgrounds: Color) -> Color:
    """Return black or white, whichever keeps the higher worst-case contrast."""
    if not backgrounds:
        raise ValueError("At least one background is required")
    black = min(contrast_ratio(bg, BLACK) for bg in backgrounds)
    white = min(contrast_ratio(bg, WHITE) for bg in backgrounds)
    return BLACK if black > white else WHITE


def color_to_hsl(color: Color) -> tuple[float, float, float]:
    """Return hue in degrees and saturation/lightness in percent, rounded to 0.1."""
    r, g, b = (channel / 255.0 for channel in color.rgb)
    high = max(r, g, b)
    low = min(r, g, b)
    delta = high - low
    h = 0.0
    s = 0.0
    lightness = (high + low) / 2
    if delta != 0:
        s = delta / (2 - high - low) if lightness > 0.5 else delta / (high + low)
        if high == r:
            h = ((g - b) / delta + (6 if g < b else 0)) / 6
        elif high == g:
            h = ((b - r) / delta + 2) / 6
        else:
            h = ((r - g) / delta + 4) / 6
    return (round(h * 360, 1), round(s * 100, 1), round(lightness * 100, 1))


def hsl_string(color: Color) -> str:
    """Format *color* as ``"221.2 83.2% 53.3%"``."""
    h, s, lightness = color_to_hsl(color)
    return f"{_trim(h)} {_trim(s)}% {_trim(lightness)}%"


def _trim(value: float) -> str:
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text
