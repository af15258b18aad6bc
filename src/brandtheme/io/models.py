"""Data models shared across the theme extraction pipeline."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

Pixel = Tuple[int, int, int]

_HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})$")

MAX_COLORS_PER_ROLE = 5


@dataclass(frozen=True, slots=True)
class Color:
    """An sRGB color identified canonically by its ``#RRGGBB`` hex form."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for channel in (self.r, self.g, self.b):
            if not isinstance(channel, int) or not 0 <= channel <= 255:
                raise ValueError(f"Channel values must be integers in 0-255: {channel!r}")

    @classmethod
    def from_hex(cls, value: str) -> Color:
        """Return the color for a six-digit hex string with optional ``#``."""
        match = _HEX_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Not a six-digit hex color: {value!r}")
        digits = match.group(1)
        return cls(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))

    @classmethod
    def from_rgb(cls, r: float, g: float, b: float) -> Color:
        """Clamp and round arbitrary channel values into a color."""
        return cls(*(_clamp_channel(value) for value in (r, g, b)))

    @property
    def hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    @property
    def rgb(self) -> Pixel:
        return (self.r, self.g, self.b)

    def distance(self, other: Color) -> float:
        """Euclidean distance in RGB space."""
        return math.sqrt(
            (self.r - other.r) ** 2 + (self.g - other.g) ** 2 + (self.b - other.b) ** 2
        )

    def __str__(self) -> str:
        return self.hex


def _clamp_channel(value: float) -> int:
    return int(max(0, min(255, math.floor(float(value) + 0.5))))


@dataclass(frozen=True, slots=True)
class ColorWithArea:
    """A color and the share (0-1) of sampled pixels it represents."""

    color: Color
    area: float

    @property
    def hex(self) -> str:
        return self.color.hex


class SourceOrigin(str, Enum):
    """Where a candidate color was observed."""

    LOGO = "logo"
    CALL_TO_ACTION = "call-to-action"
    ACCENT = "accent"
    HEADING = "heading"
    NAVIGATION = "navigation"
    STYLE_VARIABLE = "style-variable"
    PIXEL = "pixel"

    @property
    def is_structural(self) -> bool:
        return self in STRUCTURAL_ORIGINS


STRUCTURAL_ORIGINS: Tuple[SourceOrigin, ...] = (
    SourceOrigin.LOGO,
    SourceOrigin.CALL_TO_ACTION,
    SourceOrigin.ACCENT,
    SourceOrigin.HEADING,
    SourceOrigin.NAVIGATION,
)


@dataclass(frozen=True, slots=True)
class ColorSource:
    """A candidate color tagged with its origin and ranking weight."""

    color: Color
    origin: SourceOrigin
    weight: float

    @property
    def hex(self) -> str:
        return self.color.hex


@dataclass(slots=True)
class DOMColorMap:
    """Colors observed on role-tagged page elements, at most five per role."""

    roles: Dict[SourceOrigin, List[Color]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: Dict[SourceOrigin, List[Color]] = {}
        for origin in STRUCTURAL_ORIGINS:
            unique: List[Color] = []
            for color in self.roles.get(origin, ()):
                if color not in unique:
                    unique.append(color)
            cleaned[origin] = unique[:MAX_COLORS_PER_ROLE]
        unknown = set(self.roles) - set(STRUCTURAL_ORIGINS)
        if unknown:
            raise ValueError(f"Not a structural role: {sorted(o.value for o in unknown)}")
        self.roles = cleaned

    @classmethod
    def empty(cls) -> DOMColorMap:
        return cls()

    def get(self, origin: SourceOrigin) -> List[Color]:
        return list(self.roles.get(origin, ()))

    def items(self) -> Iterator[tuple[SourceOrigin, List[Color]]]:
        for origin in STRUCTURAL_ORIGINS:
            yield origin, list(self.roles[origin])

    def flatten(self) -> List[Color]:
        """All colors in role priority order."""
        return [color for _, colors in self.items() for color in colors]

    def is_empty(self) -> bool:
        return not any(self.roles.values())


@dataclass(frozen=True, slots=True)
class ThemeColors:
    """Named UI roles of a synthesized theme."""

    background: Color
    foreground: Color
    primary: Color
    primary_foreground: Color
    muted: Color
    muted_foreground: Color
    border: Color
    input: Color
    card: Color
    card_foreground: Color

    def as_dict(self) -> Dict[str, Color]:
        return {name: getattr(self, name) for name in THEME_ROLES}


THEME_ROLES: Tuple[str, ...] = (
    "background",
    "foreground",
    "primary",
    "primary_foreground",
    "muted",
    "muted_foreground",
    "border",
    "input",
    "card",
    "card_foreground",
)

# (foreground role, background role, minimum contrast ratio)
CONTRAST_PAIRS: Tuple[Tuple[str, str, float], ...] = (
    ("foreground", "background", 4.5),
    ("primary_foreground", "primary", 4.5),
    ("card_foreground", "card", 4.5),
    ("muted_foreground", "background", 4.5),
    ("muted_foreground", "muted", 4.5),
    ("border", "background", 3.0),
)


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """A validated URL pinned to one of the addresses it resolved to."""

    url: str
    hostname: str
    address: str
    addresses: Tuple[str, ...] = ()

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.address


class ThemeSource(str, Enum):
    IMAGE = "image"
    URL = "url"
    WEBSITE = "website"


class ExtractionPath(str, Enum):
    KMEANS = "k-means"
    VISION_FIRST = "vision-first"
    FALLBACK_DOM = "fallback-dom"


@dataclass(slots=True)
class ThemeResult:
    """Outcome of one extraction request."""

    palette: List[str]
    theme: ThemeColors
    source: ThemeSource
    extraction: ExtractionPath
    created_at: datetime
    accent: Color | None = None
    scores: Sequence[ColorSource] = field(default_factory=tuple)
    notes: Mapping[str, str] = field(default_factory=dict)
