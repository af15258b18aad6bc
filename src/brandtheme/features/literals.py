"""Parsing of CSS color literals into :class:`Color` values.

``parse_color_literal`` is total: every input yields either one of the
recognised literal forms or an :class:`InvalidLiteral` describing why it was
rejected. Callers branch on the returned type instead of chaining helpers
that may return ``None``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Union

import numpy as np

from ..io.models import Color
from .oklab import oklab_to_rgb, oklch_to_oklab

logger = logging.getLogger(__name__)

_HEX = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{4}|[0-9a-f]{6}|[0-9a-f]{8})$", re.IGNORECASE)
_FUNCTION = re.compile(r"^([a-z]+)\s*\((.*)\)$", re.IGNORECASE | re.DOTALL)
_NUMBER = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?"
_COMPONENT = re.compile(rf"^({_NUMBER})(%|deg|turn|rad)?$", re.IGNORECASE)
_MAX_OKLCH_CHROMA = 0.5

NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "lime": (0, 255, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "cyan": (0, 255, 255),
    "aqua": (0, 255, 255),
    "magenta": (255, 0, 255),
    "fuchsia": (255, 0, 255),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "navy": (0, 0, 128),
    "teal": (0, 128, 128),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "maroon": (128, 0, 0),
    "olive": (128, 128, 0),
}


@dataclass(frozen=True, slots=True)
class HexLiteral:
    color: Color
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class RgbLiteral:
    color: Color
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class HslLiteral:
    hue: float
    saturation: float
    lightness: float
    color: Color
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class OklchLiteral:
    lightness: float
    chroma: float
    hue: float
    color: Color
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class NamedLiteral:
    name: str
    color: Color
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class InvalidLiteral:
    text: str
    reason: str


ColorLiteral = Union[HexLiteral, RgbLiteral, HslLiteral, OklchLiteral, NamedLiteral]
ParseResult = Union[ColorLiteral, InvalidLiteral]


def parse_color_literal(text: object) -> ParseResult:
    """Parse *text* as a CSS color literal."""
    if not isinstance(text, str):
        return InvalidLiteral(repr(text), "not a string")
    value = text.strip()
    if not value:
        return InvalidLiteral(text, "empty")

    lowered = value.lower()
    if lowered == "transparent":
        return NamedLiteral("transparent", Color(0, 0, 0), alpha=0.0)
    if lowered in NAMED_COLORS:
        return NamedLiteral(lowered, Color(*NAMED_COLORS[lowered]))
    if value.startswith("#"):
        return _parse_hex(value)

    match = _FUNCTION.match(value)
    if not match:
        return InvalidLiteral(text, "unrecognised color syntax")
    name = match.group(1).lower()
    parts = _split_arguments(match.group(2))
    if parts is None:
        return InvalidLiteral(text, "malformed arguments")
    if name in ("rgb", "rgba"):
        return _parse_rgb(text, parts)
    if name in ("hsl", "hsla"):
        return _parse_hsl(text, parts)
    if name == "oklch":
        return _parse_oklch(text, parts)
    return InvalidLiteral(text, f"unsupported color function {name!r}")


def literal_to_color(text: object) -> Color | None:
    """Return the opaque color for *text*, or ``None`` if it is invalid or fully transparent."""
    parsed = parse_color_literal(text)
    if isinstance(parsed, InvalidLiteral):
        logger.debug("Ignoring color value %r: %s", text, parsed.reason)
        return None
    if parsed.alpha <= 0.0:
        return None
    return parsed.color


def _parse_hex(text: str) -> ParseResult:
    match = _HEX.match(text)
    if not match:
        return InvalidLiteral(text, "hex colors need 3, 4, 6 or 8 digits")
    digits = match.group(1)
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    alpha = int(digits[6:8], 16) / 255.0 if len(digits) == 8 else 1.0
    return HexLiteral(Color.from_hex(digits[:6]), alpha=alpha)


def _split_arguments(body: str) -> list[str] | None:
    body = body.strip()
    if not body:
        return None
    if "," in body:
        parts = [part.strip() for part in body.split(",")]
    else:
        main, _, alpha = body.partition("/")
        parts = main.split()
        if alpha.strip():
            parts.append(alpha.strip())
        elif "/" in body:
            return None
    if any(not part for part in parts):
        return None
    return parts


def _component(part: str) -> tuple[float, str] | None:
    match = _COMPONENT.match(part)
    if not match:
        return None
    value = float(match.group(1))
    if not math.isfinite(value):
        return None
    return value, (match.group(2) or "").lower()


def _alpha(parts: list[str]) -> float | None:
    if len(parts) == 3:
        return 1.0
    parsed = _component(parts[3])
    if parsed is None or parsed[1] not in ("", "%"):
        return None
    value, unit = parsed
    if unit == "%":
        value /= 100.0
    return min(1.0, max(0.0, value))


def _parse_rgb(text: str, parts: list[str]) -> ParseResult:
    if len(parts) not in (3, 4):
        return InvalidLiteral(text, "rgb() takes three channels and an optional alpha")
    channels = []
    for part in parts[:3]:
        parsed = _component(part)
        if parsed is None or parsed[1] not in ("", "%"):
            return InvalidLiteral(text, f"bad rgb channel {part!r}")
        value, unit = parsed
        channels.append(min(255.0, max(0.0, value * 2.55 if unit == "%" else value)))
    alpha = _alpha(parts)
    if alpha is None:
        return InvalidLiteral(text, "bad alpha")
    return RgbLiteral(Color.from_rgb(*channels), alpha=alpha)


def _hue_degrees(value: float, unit: str) -> float:
    if unit == "turn":
        return value * 360.0
    if unit == "rad":
        return float(np.degrees(value))
    return value


def _parse_hsl(text: str, parts: list[str]) -> ParseResult:
    if len(parts) not in (3, 4):
        return InvalidLiteral(text, "hsl() takes hue, saturation, lightness and an optional alpha")
    hue_part = _component(parts[0])
    sat_part = _component(parts[1])
    light_part = _component(parts[2])
    if hue_part is None or hue_part[1] == "%":
        return InvalidLiteral(text, "bad hue")
    if sat_part is None or light_part is None or sat_part[1] not in ("", "%") or light_part[1] not in ("", "%"):
        return InvalidLiteral(text, "saturation and lightness must be percentages")
    alpha = _alpha(parts)
    if alpha is None:
        return InvalidLiteral(text, "bad alpha")
    h = _hue_degrees(*hue_part)
    if not math.isfinite(h):
        return InvalidLiteral(text, "hue out of range")
    h %= 360.0
    s = min(100.0, max(0.0, sat_part[0]))
    lightness = min(100.0, max(0.0, light_part[0]))
    return HslLiteral(h, s, lightness, hsl_to_color(h, s, lightness), alpha=alpha)


def _parse_oklch(text: str, parts: list[str]) -> ParseResult:
    if len(parts) not in (3, 4):
        return InvalidLiteral(text, "oklch() takes lightness, chroma, hue and an optional alpha")
    light_part = _component(parts[0])
    chroma_part = _component(parts[1])
    hue_part = _component(parts[2])
    if light_part is None or chroma_part is None or hue_part is None:
        return InvalidLiteral(text, "bad oklch component")
    lightness = light_part[0] / 100.0 if light_part[1] == "%" else light_part[0]
    chroma = chroma_part[0] * 0.004 if chroma_part[1] == "%" else chroma_part[0]
    hue = _hue_degrees(*hue_part)
    if not math.isfinite(hue):
        return InvalidLiteral(text, "hue out of range")
    lightness = min(1.0, max(0.0, lightness))
    chroma = min(_MAX_OKLCH_CHROMA, max(0.0, chroma))
    hue %= 360.0
    alpha = _alpha(parts)
    if alpha is None:
        return InvalidLiteral(text, "bad alpha")
    rgb = oklab_to_rgb(oklch_to_oklab(np.array([[lightness, chroma, hue]])))[0]
    color = Color(int(rgb[0]), int(rgb[1]), int(rgb[2]))
    return OklchLiteral(lightness, chroma, hue, color, alpha=alpha)


def hsl_to_color(hue: float, saturation: float, lightness: float) -> Color:
    """Convert HSL (degrees, percent, percent) to a color."""
    s = saturation / 100.0
    l = lightness / 100.0
    c = (1 - abs(2 * l - 1)) * s
    x = c * (1 - abs((hue / 60.0) % 2 - 1))
    m = l - c / 2
    if hue < 60:
        r, g, b = c, x, 0.0
    elif hue < 120:
        r, g, b = x, c, 0.0
    elif hue < 180:
        r, g, b = 0.0, c, x
    elif hue < 240:
        r, g, b = 0.0, x, c
    elif hue < 300:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x
    return Color.from_rgb((r + m) * 255, (g + m) * 255, (b + m) * 255)
