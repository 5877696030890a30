"""Tests for the TTL cache."""
from cost_insight.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_value_expires_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("k", "v")
    clock.now += 59
    assert cache.get("k") == "v"
    clock.now += 1
    assert cache.get("k") is None
    assert cache.get("k", "fallback") == "fallback"


def test_stale_value_survives_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", "v")
    clock.now += 30
    assert cache.get("k") is None
    assert cache.get_stale("k") == "v"


def test_zero_ttl_disables_caching():
    cache = TTLCache(ttl_seconds=0, clock=FakeClock())
    assert not cache.enabled
    cache.set("k", "v")
    assert cache.get("k") is None
    assert cache.get_stale("k") is None

