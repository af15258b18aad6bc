"""Orchestration of image, image-URL and website theme extraction."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Sequence, TypeVar

from .config import ExtractionSettings
from .crawl.browser import PageSession, Region, RendererFactory, open_playwright_session
from .crawl.fetch import FetchedImage, fetch_target
from .crawl.guard import TargetGuard
from .crawl.page_scripts import ExtractionScript, RoleColors, StyleVariables
from .errors import ExtractionFailed, ExtractionTimeout, InvalidInput, RateLimited, SecurityBlocked
from .extract.normalize import decode_data_uri, sample_pixels, validate_image_bytes
from .extract.signals import dom_color_map, style_variable_colors
from .features.palette import hue_binned_palette, simple_palette
from .group.fusion import filter_grayscale, fuse, fuse_structural, palette_hexes
from .io.models import ColorSource, ExtractionPath, ResolvedTarget, ThemeResult, ThemeSource
from .ratelimit import RateLimiter
from .theme.generator import anchor_colors, generate_theme

logger = logging.getLogger(__name__)

RATE_LIMIT_KIND = "extract_theme"
MIN_VISUAL_COLORS = 2

Fetcher = Callable[[ResolvedTarget, ExtractionSettings], FetchedImage]
T = TypeVar("T")


class RequestSource(str, Enum):
    FILE = "file"
    BASE64 = "base64"
    URL = "url"
    WEBSITE = "website"


@dataclass(slots=True)
class ExtractionRequest:
    """One caller request.

    ``data`` is raw image bytes or base64 text for ``file``, a
    ``data:image/...;base64,`` URI for ``base64`` and an http(s) URL for
    ``url`` and ``website``.
    """

    source: RequestSource | str
    data: str | bytes
    user_key: str = "anonymous"
    ip_key: str = "unknown"


@dataclass(slots=True)
class PageEvidence:
    """Signals captured from one rendered page; any of them may be empty."""

    screenshot: bytes = b""
    style: StyleVariables = field(default_factory=StyleVariables)
    roles: RoleColors = field(default_factory=RoleColors)
    final_url: str = ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThemeExtractor:
    """Turns an image, an image URL or a website into a palette and theme.

    All collaborators are injected; the defaults are the real network guard,
    the Playwright renderer and the requests-based fetcher.
    """

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        rate_limiter: RateLimiter | None = None,
        guard: TargetGuard | None = None,
        renderer_factory: RendererFactory | None = None,
        fetcher: Fetcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.rate_limits)
        self.guard = guard or TargetGuard(self.settings)
        self.renderer_factory = renderer_factory or open_playwright_session
        self.fetcher = fetcher or fetch_target
        self._clock = clock

    def _result(
        self,
        palette: list[str],
        source: ThemeSource,
        extraction: ExtractionPath,
        scores: Sequence[ColorSource] = (),
        notes: Dict[str, str] | None = None,
    ) -> ThemeResult:
        _, accent = anchor_colors(palette)
        return ThemeResult(
            palette=palette,
            theme=generate_theme(palette),
            source=source,
            extraction=extraction,
            created_at=self._clock(),
            accent=accent,
            scores=tuple(scores),
            notes=notes or {},
        )

    def extract_from_image(
        self, image_bytes: bytes, source: ThemeSource = ThemeSource.IMAGE
    ) -> ThemeResult:
        """Validate raw image bytes and build a theme from a five-color palette."""
        info = validate_image_bytes(image_bytes, self.settings)
        pixels = sample_pixels(image_bytes, self.settings.sample_size)
        colors = simple_palette(pixels)
        if not colors:
            raise ExtractionFailed("Failed to extract colors from image")
        palette = [item.hex for item in colors]
        logger.info("Extracted %d colors from %s image", len(palette), info.format)
        return self._result(palette, source, ExtractionPath.KMEANS, notes={"format": info.format})

    def extract_from_data_uri(self, uri: str) -> ThemeResult:
        return self.extract_from_image(decode_data_uri(uri, self.settings))

    async def extract_from_image_url(self, url: str) -> ThemeResult:
        """Resolve and pin *url*, download it without redirects and extract."""
        target = await self.guard.resolve(url)
        fetched = await asyncio.to_thread(self.fetcher, target, self.settings)
        result = self.extract_from_image(fetched.data, ThemeSource.URL)
        result.notes = {**result.notes, "url": target.url}
        return result

    async def _signal(self, label: str, awaitable: Awaitable[T], default: T) -> T:
        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Capturing %s failed; continuing without it", label, exc_info=True)
            return default

    async def capture_evidence(self, session: PageSession, final_url: str = "") -> PageEvidence:
        """Take the screenshot and run both page scripts concurrently."""
        screenshot, style, roles = await asyncio.gather(
            self._signal("screenshot", session.screenshot(Region.viewport(self.settings)), b""),
            self._signal(
                "style variables", session.evaluate(ExtractionScript.STYLE_VARIABLES), StyleVariables()
            ),
            self._signal("role colors", session.evaluate(ExtractionScript.ROLE_COLORS), RoleColors()),
        )
        if not isinstance(style, StyleVariables):
            style = StyleVariables()
        if not isinstance(roles, RoleColors):
            roles = RoleColors()
        return PageEvidence(screenshot=screenshot, style=style, roles=roles, final_url=final_url)

    async def render(self, url: str) -> PageEvidence:
        """Validate, pin and render *url*; the session is closed on every path."""
        target = await self.guard.resolve(url)
        session = await self.renderer_factory(target, self.settings, self.guard)
        try:
            final_url = await session.navigate(target.url, self.settings.navigation_timeout)
            if final_url != target.url and not await self.guard.allows_navigation(final_url, target):
                raise SecurityBlocked("Redirect target not allowed")
            try:
                return await asyncio.wait_for(
                    self.capture_evidence(session, final_url),
                    timeout=self.settings.navigation_timeout,
                )
            except asyncio.TimeoutError as exc:
                raise ExtractionTimeout("Timed out capturing page") from exc
        finally:
            await session.close()

    def fuse_evidence(self, evidence: PageEvidence) -> tuple[list[ColorSource], ExtractionPath]:
        """Rank page colors, preferring screenshot hues when at least two survive filtering."""
        style_colors = style_variable_colors(evidence.style)
        dom_colors = dom_color_map(evidence.roles)
        if evidence.screenshot:
            try:
                pixels = sample_pixels(evidence.screenshot, self.settings.sample_size)
                visual = hue_binned_palette(pixels)
            except (ExtractionFailed, ValueError):
                logger.warning("Screenshot analysis failed; using page structure", exc_info=True)
            else:
                if len(filter_grayscale(visual)) >= MIN_VISUAL_COLORS:
                    return fuse(visual, dom_colors, style_colors), ExtractionPath.VISION_FIRST
                logger.info("Too few saturated screenshot colors; using page structure")
        return fuse_structural(dom_colors, style_colors), ExtractionPath.FALLBACK_DOM

    async def extract_from_website(self, url: str) -> ThemeResult:
        evidence = await self.render(url)
        scores, path = self.fuse_evidence(evidence)
        if not scores:
            raise ExtractionFailed("No usable colors found on page")
        palette = palette_hexes(scores)
        logger.info("Extracted %d colors from %s via %s", len(palette), evidence.final_url, path.value)
        return self._result(
            palette, ThemeSource.WEBSITE, path, scores=scores, notes={"url": evidence.final_url}
        )

    def _file_bytes(self, data: str | bytes) -> bytes:
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)
        if data.startswith("data:"):
            return decode_data_uri(data, self.settings)
        try:
            return base64.b64decode("".join(data.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInput("Invalid base64 image data") from exc

    async def extract(self, request: ExtractionRequest) -> ThemeResult:
        """Check the caller's quota, then dispatch on ``request.source``."""
        decision = self.rate_limiter.check(RATE_LIMIT_KIND, request.user_key, request.ip_key)
        if not decision.allowed:
            raise RateLimited(decision.retry_after or 60)

        try:
            source = RequestSource(request.source)
        except ValueError:
            raise InvalidInput(f"Unknown source: {request.source!r}") from None
        data = request.data
        if not data:
            raise InvalidInput("No data provided")
        if len(data) > self.settings.max_request_data:
            raise InvalidInput("Request data too large")

        if source is RequestSource.FILE:
            return await asyncio.to_thread(self.extract_from_image, self._file_bytes(data))
        if not isinstance(data, str):
            raise InvalidInput(f"Source {source.value!r} expects text data")
        if source is RequestSource.BASE64:
            return await asyncio.to_thread(self.extract_from_data_uri, data)
        if source is RequestSource.URL:
            return await self.extract_from_image_url(data)
        return await self.extract_from_website(data)
