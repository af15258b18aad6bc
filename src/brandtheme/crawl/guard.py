"""Validation and pinned resolution of untrusted URLs.

Every request for a third-party resource passes through :class:`TargetGuard`
first. The URL is checked textually (length, syntax, scheme, host blocklist,
IP literals), then both address families are resolved under a timeout and
every answer is checked against loopback, private, link-local, unique-local
and metadata ranges. One answer is pinned in the returned
:class:`ResolvedTarget` so later connections cannot be steered elsewhere by a
second DNS answer.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import socket
from typing import Awaitable, Callable
from urllib.parse import SplitResult, urlsplit, urlunsplit

from ..config import ExtractionSettings
from ..errors import InvalidInput, SecurityBlocked
from ..io.models import ResolvedTarget

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "0.0.0.0",
        "169.254.169.254",
        "metadata.google.internal",
    }
)
_PASSIVE_SCHEMES = ("data", "blob", "about")
_NUMERIC_HOST = re.compile(r"^[0-9a-fx.]+$", re.IGNORECASE)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str, int], Awaitable[list[str]]]


async def system_resolver(hostname: str, family: int) -> list[str]:
    """Resolve *hostname* for one address family using the event loop's resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, family=family, type=socket.SOCK_STREAM)
    addresses: list[str] = []
    for info in infos:
        address = str(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def normalize_hostname(hostname: str | None) -> str:
    return (hostname or "").strip().rstrip(".").lower()


def is_blocked_hostname(hostname: str) -> bool:
    """Return ``True`` when *hostname* is, or is a subdomain of, a blocked name."""
    host = normalize_hostname(hostname)
    return any(host == blocked or host.endswith("." + blocked) for blocked in BLOCKED_HOSTS)


def parse_ip_literal(hostname: str) -> tuple[IPAddress, bool] | None:
    """Return ``(address, canonical)`` if *hostname* is an IP literal.

    Non-canonical IPv4 spellings such as ``2130706433``, ``0x7f000001`` or
    ``127.1`` are decoded the way a resolver would decode them and reported
    with ``canonical=False``.
    """
    host = normalize_hostname(hostname).strip("[]")
    if not host:
        return None
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return address, True
    if not _NUMERIC_HOST.match(host) or not any(ch.isdigit() for ch in host):
        return None
    try:
        packed = socket.inet_aton(host)
    except OSError:
        return None
    return ipaddress.IPv4Address(packed), False


def _unwrap(address: IPAddress) -> IPAddress:
    if isinstance(address, ipaddress.IPv6Address):
        if address.ipv4_mapped is not None:
            return address.ipv4_mapped
        if address.sixtofour is not None:
            return address.sixtofour
        if address.teredo is not None:
            return address.teredo[1]
    return address


def is_blocked_ip(address: str | IPAddress) -> bool:
    """Return ``True`` for any address that is not publicly routable."""
    if isinstance(address, str):
        literal = parse_ip_literal(address)
        if literal is None:
            return True
        ip, canonical = literal
        if not canonical:
            return True
    else:
        ip = address
    ip = _unwrap(ip)
    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_reserved
        or ip.is_multicast
        or not ip.is_global
    )


def check_url(url: str, settings: ExtractionSettings) -> SplitResult:
    """Textual validation of *url*; raises before any network activity."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("Invalid URL")
    if len(url) > settings.max_url_length:
        raise InvalidInput("URL too long")
    try:
        parts = urlsplit(url.strip())
        parts.port
    except ValueError as exc:
        raise InvalidInput("Invalid URL") from exc
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise SecurityBlocked("Only HTTP/HTTPS allowed")
    hostname = normalize_hostname(parts.hostname)
    if not hostname:
        raise InvalidInput("Invalid URL")
    if is_blocked_hostname(hostname):
        raise SecurityBlocked("URL not allowed")
    literal = parse_ip_literal(hostname)
    if literal is not None and (not literal[1] or is_blocked_ip(literal[0])):
        raise SecurityBlocked("URL resolves to blocked IP")
    return parts


def _normalized_url(parts: SplitResult) -> str:
    host = normalize_hostname(parts.hostname)
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{parts.port}" if parts.port is not None else host
    return urlunsplit((parts.scheme.lower(), netloc, parts.path or "/", parts.query, ""))


class TargetGuard:
    """Validates URLs and pins them to a checked address."""

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self._resolver = resolver or system_resolver

    async def _lookup(self, hostname: str, family: int) -> list[str]:
        try:
            return await asyncio.wait_for(
                self._resolver(hostname, family), timeout=self.settings.dns_timeout
            )
        except asyncio.TimeoutError:
            logger.debug("DNS lookup for %s (family %s) timed out", hostname, family)
        except (OSError, UnicodeError):
            logger.debug("DNS lookup for %s (family %s) failed", hostname, family, exc_info=True)
        return []

    async def resolve_addresses(self, hostname: str) -> tuple[list[str], list[str]]:
        """Resolve IPv4 and IPv6 concurrently; either family may fail on its own."""
        v4, v6 = await asyncio.gather(
            self._lookup(hostname, socket.AF_INET),
            self._lookup(hostname, socket.AF_INET6),
        )
        return list(v4), list(v6)

    async def resolve(self, url: str) -> ResolvedTarget:
        """Validate *url*, resolve it and pin one checked address."""
        parts = check_url(url, self.settings)
        hostname = normalize_hostname(parts.hostname)
        literal = parse_ip_literal(hostname)
        if literal is not None:
            v4 = [str(literal[0])] if literal[0].version == 4 else []
            v6 = [str(literal[0])] if literal[0].version == 6 else []
        else:
            v4, v6 = await self.resolve_addresses(hostname)
        addresses = v4 + v6
        if not addresses:
            logger.warning("Blocked %s: could not resolve hostname", hostname)
            raise SecurityBlocked("Could not resolve hostname")
        blocked = [address for address in addresses if is_blocked_ip(address)]
        if blocked:
            logger.warning("Blocked %s: resolves to %s", hostname, ", ".join(blocked))
            raise SecurityBlocked("URL resolves to blocked IP")
        return ResolvedTarget(
            url=_normalized_url(parts),
            hostname=hostname,
            address=(v4 or v6)[0],
            addresses=tuple(addresses),
        )

    def allows_request(self, url: str) -> bool:
        """Textual check for sub-resource requests made by a rendered page."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        if parts.scheme.lower() in _PASSIVE_SCHEMES:
            return True
        hostname = normalize_hostname(parts.hostname)
        if not hostname:
            return False
        if is_blocked_hostname(hostname):
            return False
        literal = parse_ip_literal(hostname)
        return literal is None or (literal[1] and not is_blocked_ip(literal[0]))

    async def allows_navigation(self, url: str, pinned: ResolvedTarget) -> bool:
        """Re-validate a navigation target the page tried to move to."""
        try:
            parts = check_url(url, self.settings)
        except (InvalidInput, SecurityBlocked) as exc:
            logger.warning("Blocked navigation to %s: %s", url, exc.message)
            return False
        hostname = normalize_hostname(parts.hostname)
        if hostname == pinned.hostname or parse_ip_literal(hostname) is not None:
            return True
        try:
            await self.resolve(url)
        except SecurityBlocked as exc:
            logger.warning("Blocked navigation to %s: %s", url, exc.message)
            return False
        return True

