"""Oklab / OkLCh conversions for perceptually uniform color decisions.

Based on Bjorn Ottosson's Oklab space (https://bottosson.github.io/posts/oklab/).
The array functions operate on ``(N, 3)`` arrays so whole pixel samples can be
converted at once; the scalar helpers wrap them for single :class:`Color`
values. Hue-sensitive decisions elsewhere in the package go through this
module rather than HSV hue.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from ..io.models import Color

DELTA_E_SCALE = 100.0

_RGB_TO_LMS = np.array(
    [
        [0.4122214708, 0.5363325363, 0.0514459929],
        [0.2119034982, 0.6806995451, 0.1073969566],
        [0.0883024619, 0.2817188376, 0.6299787005],
    ]
)
_LMS_TO_LAB = np.array(
    [
        [0.2104542553, 0.7936177850, -0.0040720468],
        [1.9779984951, -2.4285922050, 0.4505937099],
        [0.0259040371, 0.7827717662, -0.8086757660],
    ]
)
_LAB_TO_LMS = np.array(
    [
        [1.0, 0.3963377774, 0.2158037573],
        [1.0, -0.1055613458, -0.0638541728],
        [1.0, -0.0894841775, -1.2914855480],
    ]
)
_LMS_TO_RGB = np.array(
    [
        [4.0767416621, -3.3077115913, 0.2309699292],
        [-1.2684380046, 2.6097574011, -0.3413193965],
        [-0.0041960863, -0.7034186147, 1.7076147010],
    ]
)


class Oklab(NamedTuple):
    L: float
    a: float
    b: float


class OkLCh(NamedTuple):
    L: float
    C: float
    h: float


def _srgb_to_linear(channels: np.ndarray) -> np.ndarray:
    c = channels / 255.0
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


def _linear_to_srgb(channels: np.ndarray) -> np.ndarray:
    positive = np.clip(channels, 0.0, None)
    return np.where(
        channels <= 0.0031308,
        channels * 12.92,
        1.055 * positive ** (1.0 / 2.4) - 0.055,
    )


def rgb_to_oklab(pixels: np.ndarray) -> np.ndarray:
    """Convert an ``(N, 3)`` array of 0-255 RGB values to Oklab."""
    rgb = np.asarray(pixels, dtype=np.float64).reshape(-1, 3)
    lms = _srgb_to_linear(rgb) @ _RGB_TO_LMS.T
    return np.cbrt(lms) @ _LMS_TO_LAB.T


def oklab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert an ``(N, 3)`` Oklab array back to clamped, rounded uint8 RGB."""
    lab = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
    lms = (lab @ _LAB_TO_LMS.T) ** 3
    srgb = _linear_to_srgb(lms @ _LMS_TO_RGB.T)
    return np.floor(np.clip(srgb, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def oklab_to_oklch(lab: np.ndarray) -> np.ndarray:
    """Return ``(L, C, h)`` with hue in degrees normalised to [0, 360)."""
    lab = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
    chroma = np.hypot(lab[:, 1], lab[:, 2])
    hue = np.degrees(np.arctan2(lab[:, 2], lab[:, 1])) % 360.0
    return np.column_stack((lab[:, 0], chroma, hue))


def oklch_to_oklab(lch: np.ndarray) -> np.ndarray:
    lch = np.asarray(lch, dtype=np.float64).reshape(-1, 3)
    radians = np.radians(lch[:, 2])
    return np.column_stack(
        (lch[:, 0], lch[:, 1] * np.cos(radians), lch[:, 1] * np.sin(radians))
    )


def rgb_to_oklch(pixels: np.ndarray) -> np.ndarray:
    return oklab_to_oklch(rgb_to_oklab(pixels))


def to_uniform(color: Color) -> Oklab:
    L, a, b = rgb_to_oklab(np.array([color.rgb]))[0]
    return Oklab(float(L), float(a), float(b))


def from_uniform(lab: Oklab) -> Color:
    r, g, b = oklab_to_rgb(np.array([lab]))[0]
    return Color(int(r), int(g), int(b))


def to_cylindrical(lab: Oklab) -> OkLCh:
    L, C, h = oklab_to_oklch(np.array([lab]))[0]
    return OkLCh(float(L), float(C), float(h))


def from_cylindrical(lch: OkLCh) -> Oklab:
    L, a, b = oklch_to_oklab(np.array([lch]))[0]
    return Oklab(float(L), float(a), float(b))


def hue(color: Color) -> float:
    """Perceptual hue angle of *color* in degrees."""
    return to_cylindrical(to_uniform(color)).h


def chroma(color: Color) -> float:
    return to_cylindrical(to_uniform(color)).C


def perceptual_distance(first: Color, second: Color) -> float:
    """Euclidean Oklab distance scaled by 100 (a deltaE-like scale).

    Roughly: 0 is identical, below 1 imperceptible, above 10 clearly different.
    """
    lab = rgb_to_oklab(np.array([first.rgb, second.rgb]))
    return float(np.linalg.norm(lab[0] - lab[1]) * DELTA_E_SCALE)
