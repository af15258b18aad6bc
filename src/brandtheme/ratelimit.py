"""Fixed-window request quotas keyed by user and by client address."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping

from .config import DEFAULT_RATE_LIMITS, RateLimitPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int | None = None


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per ``(kind, user)`` and ``(kind, ip)`` within a window.

    Instances are owned by the caller and safe to share between threads; a
    check and the increments that follow it happen under one lock. Expired
    windows are swept from within ``check`` at most once per window length.
    """

    def __init__(
        self,
        policies: Mapping[str, RateLimitPolicy] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policies = dict(policies or DEFAULT_RATE_LIMITS)
        self._clock = clock
        self._lock = Lock()
        self._windows: Dict[str, _Window] = {}
        self._sweep_interval = max(
            (policy.window_seconds for policy in self.policies.values()), default=60.0
        )
        self._next_sweep: float | None = None

    def _exhausted(self, key: str, limit: int, now: float) -> int | None:
        window = self._windows.get(key)
        if window is not None and window.reset_at > now and window.count >= limit:
            return max(1, math.ceil(window.reset_at - now))
        return None

    def _increment(self, key: str, seconds: float, now: float) -> None:
        window = self._windows.get(key)
        if window is None or window.reset_at <= now:
            self._windows[key] = _Window(count=1, reset_at=now + seconds)
        else:
            window.count += 1

    def check(self, kind: str, user_key: str, ip_key: str) -> RateLimitDecision:
        """Record one request of *kind* unless either quota is already spent."""
        try:
            policy = self.policies[kind]
        except KeyError:
            raise ValueError(f"Unknown rate limit kind: {kind!r}") from None
        user = f"{kind}:user:{user_key}"
        ip = f"{kind}:ip:{ip_key}"
        with self._lock:
            now = self._clock()
            if self._next_sweep is None or now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self._sweep_interval
            for key, limit in ((user, policy.per_user), (ip, policy.per_ip)):
                retry_after = self._exhausted(key, limit, now)
                if retry_after is not None:
                    logger.info("Rate limit hit for %s; retry in %ss", key, retry_after)
                    return RateLimitDecision(allowed=False, retry_after=retry_after)
            self._increment(user, policy.window_seconds, now)
            self._increment(ip, policy.window_seconds, now)
        return RateLimitDecision(allowed=True)

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Dropped %d expired rate limit windows", len(expired))
        return len(expired)

    def purge_expired(self) -> int:
        """Drop windows that have ended; returns how many were removed."""
        with self._lock:
            return self._drop_expired(self._clock())

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
