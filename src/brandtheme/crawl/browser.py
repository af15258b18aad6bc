"""Headless page rendering behind the network guard.

The pipeline talks to a :class:`PageSession`; :class:`PlaywrightSession` is the
Chromium implementation. Chromium is started with a host-resolver rule that
maps the requested hostname to the address the guard pinned, so the browser
never performs its own lookup for it. Every navigation the page attempts is
re-checked by the guard and every sub-resource is checked textually.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Protocol

from playwright.async_api import (  # type: ignore[import-untyped]
    Error as PlaywrightError,
    Route,
    Request,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..config import ExtractionSettings
from ..errors import ExtractionFailed, ExtractionTimeout, SecurityBlocked
from ..io.models import ResolvedTarget
from .guard import TargetGuard
from .page_scripts import ExtractionScript, RoleColors, StyleVariables, parse_result, script_source

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = (
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--js-flags=--noexpose-wasm",
)


@dataclass(frozen=True, slots=True)
class Region:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def viewport(cls, settings: ExtractionSettings) -> Region:
        return cls(0, 0, settings.viewport_width, settings.viewport_height)


class PageSession(Protocol):
    """A rendered page that can be navigated, queried and captured."""

    async def navigate(self, url: str, timeout: float) -> str:
        """Load *url* and return the URL the page ended up on."""
        ...

    async def evaluate(self, script: ExtractionScript) -> StyleVariables | RoleColors:
        ...

    async def screenshot(self, region: Region) -> bytes:
        ...

    async def close(self) -> None:
        ...


RendererFactory = Callable[
    [ResolvedTarget, ExtractionSettings, TargetGuard], Awaitable[PageSession]
]


def host_resolver_rule(target: ResolvedTarget) -> str:
    address = f"[{target.address}]" if target.is_ipv6 else target.address
    return f"--host-resolver-rules=MAP {target.hostname} {address}"


def launch_args(target: ResolvedTarget) -> list[str]:
    return [host_resolver_rule(target), *CHROMIUM_ARGS]


class PlaywrightSession:
    """One browser, context and page dedicated to a single extraction."""

    def __init__(self, target: ResolvedTarget, guard: TargetGuard) -> None:
        self.target = target
        self.guard = guard
        self.blocked: List[str] = []
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def start(self, settings: ExtractionSettings) -> None:
        timeout_ms = int(settings.navigation_timeout * 1000)
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=True, args=launch_args(self.target)
        )
        self._context = await self._browser.new_context(
            viewport=settings.viewport,
            user_agent=settings.user_agent,
            bypass_csp=False,
            service_workers="block",
        )
        self._context.set_default_navigation_timeout(timeout_ms)
        self._context.set_default_timeout(timeout_ms)
        self._page = await self._context.new_page()
        await self._page.route("**/*", self._route)

    async def _route(self, route: Route, request: Request) -> None:
        url = request.url
        if request.is_navigation_request():
            allowed = await self.guard.allows_navigation(url, self.target)
        else:
            allowed = self.guard.allows_request(url)
        if not allowed:
            logger.info("Blocked request to %s", url)
            self.blocked.append(url)
            await route.abort("blockedbyclient")
            return
        await route.continue_()

    async def navigate(self, url: str, timeout: float) -> str:
        if self._page is None:
            raise ExtractionFailed("Browser session is not started")
        try:
            await self._page.goto(url, wait_until="networkidle", timeout=int(timeout * 1000))
        except PlaywrightTimeoutError as exc:
            logger.warning("Navigation timeout for %s: %s", url, exc)
            raise ExtractionTimeout("Page took too long to load") from exc
        except PlaywrightError as exc:
            if url in self.blocked:
                raise SecurityBlocked("URL not allowed") from exc
            logger.warning("Navigation failed for %s: %s", url, exc)
            raise ExtractionFailed("Failed to load page") from exc
        return self._page.url

    async def evaluate(self, script: ExtractionScript) -> StyleVariables | RoleColors:
        if self._page is None:
            raise ExtractionFailed("Browser session is not started")
        raw = await self._page.evaluate(script_source(script))
        return parse_result(script, raw)

    async def screenshot(self, region: Region) -> bytes:
        if self._page is None:
            raise ExtractionFailed("Browser session is not started")
        return await self._page.screenshot(
            type="png",
            clip={"x": region.x, "y": region.y, "width": region.width, "height": region.height},
        )

    async def close(self) -> None:
        """Tear down page, context, browser and driver; never raises."""
        for name in ("_page", "_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception:  # pragma: no cover - best-effort cleanup
                logger.debug("Failed to close %s", name.strip("_"), exc_info=True)
            setattr(self, name, None)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception:  # pragma: no cover - best-effort cleanup
                logger.debug("Failed to stop Playwright", exc_info=True)
            self._playwright = None


async def open_playwright_session(
    target: ResolvedTarget, settings: ExtractionSettings, guard: TargetGuard
) -> PlaywrightSession:
    """Start Chromium pinned to *target* and return a ready session."""
    session = PlaywrightSession(target, guard)
    try:
        await session.start(settings)
    except PlaywrightError as exc:
        await session.close()
        logger.error("Could not start headless browser: %s", exc)
        raise ExtractionFailed("Headless browser unavailable") from exc
    except BaseException:
        await session.close()
        raise
    return session
