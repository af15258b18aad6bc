"""Runtime settings for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

DEFAULT_USER_AGENT = "brandtheme/1.0 ThemeExtractor"


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Per-minute quotas for one kind of request."""

    per_user: int
    per_ip: int
    window_seconds: float = 60.0


DEFAULT_RATE_LIMITS: Dict[str, RateLimitPolicy] = {
    "extract_theme": RateLimitPolicy(per_user=10, per_ip=30, window_seconds=60.0),
}


@dataclass(frozen=True, slots=True)
class ExtractionSettings:
    """Limits and timeouts used by every extraction request.

    Timeouts are in seconds. The viewport doubles as the screenshot region.
    """

    navigation_timeout: float = 15.0
    dns_timeout: float = 5.0
    fetch_timeout: float = 10.0
    viewport_width: int = 1280
    viewport_height: int = 720
    max_url_length: int = 2048
    max_image_bytes: int = 5 * 1024 * 1024
    max_dimension: int = 4096
    max_base64_length: int = 7 * 1024 * 1024
    max_request_data: int = 10 * 1024 * 1024
    sample_size: int = 100
    user_agent: str = DEFAULT_USER_AGENT
    rate_limits: Dict[str, RateLimitPolicy] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}
