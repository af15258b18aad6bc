import asyncio

from brandtheme.config import ExtractionSettings
from brandtheme.crawl.browser import PlaywrightSession, Region, host_resolver_rule, launch_args
from brandtheme.io.models import ResolvedTarget

TARGET = ResolvedTarget(url="https://example.com/", hostname="example.com", address="93.184.216.34")


class FakeRequest:
    def __init__(self, url, navigation):
        self.url = url
        self._navigation = navigation

    def is_navigation_request(self):
        return self._navigation


class FakeRoute:
    def __init__(self):
        self.outcome = None

    async def abort(self, error_code=None):
        self.outcome = ("abort", error_code)

    async def continue_(self):
        self.outcome = ("continue", None)


def _route(session, url, navigation):
    route = FakeRoute()
    asyncio.run(session._route(route, FakeRequest(url, navigation)))
    return route.outcome


def test_resolver_rule_pins_address():
    assert host_resolver_rule(TARGET) == "--host-resolver-rules=MAP example.com 93.184.216.34"
    v6 = ResolvedTarget(url="https://v6.example/", hostname="v6.example", address="2606:4700::1111")
    assert host_resolver_rule(v6) == "--host-resolver-rules=MAP v6.example [2606:4700::1111]"
    args = launch_args(TARGET)
    assert "--js-flags=--noexpose-wasm" in args
    assert args[0].startswith("--host-resolver-rules=")


def test_viewport_region():
    assert Region.viewport(ExtractionSettings()) == Region(0, 0, 1280, 720)


def test_route_blocks_private_navigation_and_sub_resources(public_guard):
    session = PlaywrightSession(TARGET, public_guard)
    assert _route(session, "https://example.com/about", True) == ("continue", None)
    assert _route(session, "http://169.254.169.254/latest/", True) == ("abort", "blockedbyclient")
    assert _route(session, "https://cdn.example.net/app.js", False) == ("continue", None)
    assert _route(session, "http://127.0.0.1:9000/metrics", False) == ("abort", "blockedbyclient")
    assert session.blocked == ["http://169.254.169.254/latest/", "http://127.0.0.1:9000/metrics"]


def test_close_without_start_is_a_no_op(public_guard):
    session = PlaywrightSession(TARGET, public_guard)
    asyncio.run(session.close())
    assert session.blocked == []
