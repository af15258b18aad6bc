import socket
import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from brandtheme.config import ExtractionSettings  # noqa: E402
from brandtheme.crawl.guard import TargetGuard  # noqa: E402
from brandtheme.crawl.page_scripts import ExtractionScript, RoleColors, StyleVariables  # noqa: E402


def make_resolver(v4=(), v6=(), fail=()):
    """Build an async resolver answering from fixed address lists."""
    calls = []

    async def resolver(hostname, family):
        calls.append((hostname, family))
        if family in fail:
            raise OSError("lookup failed")
        if family == socket.AF_INET:
            return list(v4)
        return list(v6)

    resolver.calls = calls
    return resolver


def png_bytes(colors, size=(20, 20), fmt="PNG"):
    """Encode an image whose rows cycle through *colors* as stripes."""
    img = Image.new("RGB", size)
    width, height = size
    stripe = max(1, height // len(colors))
    for y in range(height):
        color = colors[min(y // stripe, len(colors) - 1)]
        for x in range(width):
            img.putpixel((x, y), color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeSession:
    """In-memory page session recording how it was used."""

    def __init__(
        self,
        screenshot=b"",
        style=None,
        roles=None,
        final_url=None,
        navigate_error=None,
        screenshot_error=None,
        navigate_hook=None,
    ):
        self._screenshot = screenshot
        self._style = style or StyleVariables()
        self._roles = roles or RoleColors()
        self._final_url = final_url
        self._navigate_error = navigate_error
        self._screenshot_error = screenshot_error
        self._navigate_hook = navigate_hook
        self.navigated = []
        self.evaluated = []
        self.closed = False

    async def navigate(self, url, timeout):
        self.navigated.append((url, timeout))
        if self._navigate_hook is not None:
            await self._navigate_hook()
        if self._navigate_error is not None:
            raise self._navigate_error
        return self._final_url or url

    async def evaluate(self, script):
        self.evaluated.append(ExtractionScript(script))
        if script is ExtractionScript.STYLE_VARIABLES:
            return self._style
        return self._roles

    async def screenshot(self, region):
        if self._screenshot_error is not None:
            raise self._screenshot_error
        return self._screenshot

    async def close(self):
        self.closed = True


@pytest.fixture
def settings():
    return ExtractionSettings()


@pytest.fixture
def public_guard(settings):
    return TargetGuard(settings, resolver=make_resolver(v4=["93.184.216.34"]))
