"""
Tests for the listing cache.
"""

from vault.cache import ListingCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_cache(clock):
    return ListingCache(ttl_seconds=60, min_refetch_seconds=10, clock=clock)


def test_hit_until_ttl_expires():
    clock = FakeClock()
    cache = make_cache(clock)
    cache.put("0xABC", ("a",))

    clock.now += 59
    assert cache.get("0xabc") == ("a",)

    clock.now += 1
    assert cache.get("0xabc") is None
    assert len(cache) == 0


def test_keys_are_normalized():
    cache = make_cache(FakeClock())
    cache.put("Bearer 0xAbC ", ("a",))

    assert cache.get("0xabc") == ("a",)


def test_invalidate():
    cache = make_cache(FakeClock())
    cache.put("0xabc", ("a",))

    assert cache.invalidate("0xabc") is True
    assert cache.invalidate("0xabc") is False
    assert cache.get("0xabc") is None


def test_refresh_throttle():
    clock = FakeClock()
    cache = make_cache(clock)
    assert cache.allow_refresh("0xabc") is True

    cache.put("0xabc", ())
    assert cache.allow_refresh("0xabc") is False

    clock.now += 10
    assert cache.allow_refresh("0xabc") is True


def test_clear():
    cache = make_cache(FakeClock())
    cache.put("0xabc", ())
    cache.put("0xdef", ())

    cache.clear()

    assert len(cache) == 0
