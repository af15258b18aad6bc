"""HTTP fetching of remote images for the theme pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse, urlsplit, urlunsplit

import requests
from requests import PreparedRequest, Response, Session
from requests.adapters import HTTPAdapter
from tenacity import (  # type: ignore[import-untyped]
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import ExtractionSettings
from ..errors import ExtractionTimeout, InvalidInput, SecurityBlocked
from ..io.models import ResolvedTarget

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class RetryableHTTPStatusError(Exception):
    """Raised for HTTP status codes that should trigger a retry."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Server returned status {status_code}")
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class FetchedImage:
    url: str
    content_type: str
    data: bytes


class PinnedAddressAdapter(HTTPAdapter):
    """Transport adapter that connects to a pre-resolved address.

    The request URL is rewritten to the pinned IP while the ``Host`` header,
    TLS SNI and certificate hostname check keep using the original name, so
    no second DNS lookup happens between validation and the download.
    """

    def __init__(self, target: ResolvedTarget, **kwargs) -> None:
        self.target = target
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs) -> None:
        pool_kwargs["server_hostname"] = self.target.hostname
        super().init_poolmanager(connections, maxsize, block, **pool_kwargs)

    def send(self, request: PreparedRequest, **kwargs) -> Response:
        parts = urlsplit(request.url or "")
        if (parts.hostname or "").rstrip(".").lower() != self.target.hostname:
            raise SecurityBlocked("Host does not match the validated target")
        address = f"[{self.target.address}]" if self.target.is_ipv6 else self.target.address
        netloc = f"{address}:{parts.port}" if parts.port else address
        request.headers["Host"] = parts.netloc.rpartition("@")[2]
        request.url = urlunsplit(parts._replace(netloc=netloc))
        return super().send(request, **kwargs)


def new_session(settings: ExtractionSettings, target: ResolvedTarget | None = None) -> Session:
    """Return a requests session configured with image-fetching headers.

    With *target*, every connection goes to ``target.address``.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": settings.user_agent,
            "Accept": "image/avif,image/webp,image/png,image/jpeg,image/gif,*/*;q=0.5",
        }
    )
    # Environment proxies would route around the address checks.
    session.trust_env = False
    if target is not None:
        adapter = PinnedAddressAdapter(target)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
    return session


def _retryer() -> Retrying:
    return Retrying(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(
            (requests.Timeout, requests.ConnectionError, RetryableHTTPStatusError)
        ),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )


def ensure_http_scheme(url: str) -> str:
    """Ensure *url* is qualified with an HTTP scheme, defaulting to https."""
    cleaned = url.strip()
    if not cleaned:
        return cleaned
    if cleaned.startswith(("http://", "https://")):
        return cleaned
    if cleaned.startswith("//"):
        return f"https:{cleaned}"
    parsed = urlparse(cleaned)
    if parsed.scheme and parsed.netloc:
        return cleaned
    return f"https://{cleaned}"


def _fetch_once(session: Session, url: str, settings: ExtractionSettings) -> FetchedImage:
    """Issue a single GET for *url* and read at most ``max_image_bytes`` of body."""
    limit = settings.max_image_bytes
    with session.get(
        url, timeout=settings.fetch_timeout, allow_redirects=False, stream=True
    ) as response:
        status = response.status_code
        if 300 <= status < 400:
            logger.warning("Refusing redirect from %s to %s", url, response.headers.get("Location"))
            raise SecurityBlocked("Redirects are not allowed")
        if 500 <= status < 600:
            raise RetryableHTTPStatusError(status)
        if status >= 400:
            raise InvalidInput(f"Failed to fetch image: HTTP {status}")

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
        if not content_type.startswith("image/"):
            raise InvalidInput("URL does not point to an image")

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise InvalidInput(f"Image exceeds {limit // (1024 * 1024)}MB limit")

        body = bytearray()
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > limit:
                raise InvalidInput(f"Image exceeds {limit // (1024 * 1024)}MB limit")
    return FetchedImage(url=url, content_type=content_type, data=bytes(body))


def fetch_image(
    url: str,
    settings: ExtractionSettings | None = None,
    session: Session | None = None,
    target: ResolvedTarget | None = None,
) -> FetchedImage:
    """Download the image at an already validated *url*.

    Transient failures (timeouts, connection errors, 5xx) are retried. Redirects
    are refused outright, since the next hop has not been checked. When the
    session is created here and *target* is given, it is pinned to
    ``target.address``.
    """
    settings = settings or ExtractionSettings()
    owned = session is None
    session = session or new_session(settings, target)
    try:
        return _retryer()(lambda: _fetch_once(session, url, settings))
    except requests.Timeout as exc:
        logger.warning("Timed out fetching %s: %s", url, exc)
        raise ExtractionTimeout("Timed out fetching image") from exc
    except RetryableHTTPStatusError as exc:
        logger.warning("Server error fetching %s: %s", url, exc)
        raise InvalidInput(f"Failed to fetch image: HTTP {exc.status_code}") from exc
    except requests.RequestException as exc:
        logger.warning("Request error fetching %s: %s", url, exc)
        raise InvalidInput("Failed to fetch image") from exc
    finally:
        if owned:
            session.close()


def fetch_target(target: ResolvedTarget, settings: ExtractionSettings) -> FetchedImage:
    """Download ``target.url`` over a connection pinned to its resolved address."""
    return fetch_image(target.url, settings, target=target)
