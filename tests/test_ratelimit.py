import threading

import pytest

from brandtheme.config import RateLimitPolicy
from brandtheme.ratelimit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_eleventh_call_in_a_minute_is_denied():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(10):
        assert limiter.check("extract_theme", "user-1", "203.0.113.7").allowed
    clock.now += 15
    decision = limiter.check("extract_theme", "user-1", "203.0.113.7")
    assert not decision.allowed
    assert decision.retry_after == 45


def test_window_expiry_restores_quota():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(10):
        limiter.check("extract_theme", "user-1", "ip")
    clock.now += 60
    assert limiter.check("extract_theme", "user-1", "ip").allowed


def test_ip_quota_applies_across_users():
    limiter = RateLimiter({"extract_theme": RateLimitPolicy(per_user=10, per_ip=3)}, clock=FakeClock())
    for user in ("a", "b", "c"):
        assert limiter.check("extract_theme", user, "198.51.100.1").allowed
    assert not limiter.check("extract_theme", "d", "198.51.100.1").allowed
    assert limiter.check("extract_theme", "d", "198.51.100.2").allowed


def test_denied_calls_are_not_counted():
    clock = FakeClock()
    limiter = RateLimiter({"extract_theme": RateLimitPolicy(per_user=1, per_ip=2)}, clock=clock)
    assert limiter.check("extract_theme", "a", "ip").allowed
    assert not limiter.check("extract_theme", "a", "ip").allowed
    assert limiter.check("extract_theme", "b", "ip").allowed


def test_concurrent_checks_do_not_lose_updates():
    limiter = RateLimiter({"extract_theme": RateLimitPolicy(per_user=500, per_ip=10_000)})
    allowed = []
    lock = threading.Lock()

    def worker():
        for _ in range(100):
            decision = limiter.check("extract_theme", "shared", "ip")
            with lock:
                allowed.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert allowed.count(True) == 500


def test_purge_and_reset():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check("extract_theme", "a", "ip")
    assert limiter.purge_expired() == 0
    clock.now += 61
    assert limiter.purge_expired() == 2
    for _ in range(10):
        limiter.check("extract_theme", "a", "ip")
    limiter.reset()
    assert limiter.check("extract_theme", "a", "ip").allowed


def test_unknown_kind():
    with pytest.raises(ValueError):
        RateLimiter().check("nope", "a", "ip")


def test_expired_windows_are_swept_during_checks():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for n in range(1000):
        limiter.check("extract_theme", f"user-{n}", f"198.51.100.{n}")
    assert len(limiter._windows) == 2000
    clock.now += 30
    limiter.check("extract_theme", "late", "203.0.113.9")
    assert len(limiter._windows) == 2002
    clock.now += 3600
    assert limiter.check("extract_theme", "user-0", "198.51.100.0").allowed
    assert len(limiter._windows) == 2
