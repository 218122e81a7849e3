"""Unit tests for cache utilities."""
import time

from common.cache import RoomsViewCache, SimpleTTLCache


class TestSimpleTTLCache:
    """Test the TTL cache implementation."""

    def test_cache_set_and_get(self):
        cache = SimpleTTLCache[str](ttl=60)

        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

    def test_cache_get_nonexistent_key(self):
        cache = SimpleTTLCache[str](ttl=60)

        assert cache.get("nonexistent") is None

    def test_cache_ttl_expiration(self):
        """Values expire after the TTL."""
        cache = SimpleTTLCache[str](ttl=1)

        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

        time.sleep(1.1)

        assert cache.get("key1") is None

    def test_cache_clear(self):
        cache = SimpleTTLCache[str](ttl=60)

        cache.set("key1", "value1")
        cache.set("key2", "value2")
        cache.clear()

        assert cache.get("key1") is None
        assert cache.get("key2") is None


class TestRoomsViewCache:
    """Test the read-through cache used for the aggregated room view."""

    def test_get_or_compute_computes_once(self):
        cache = RoomsViewCache[list](ttl=60)
        calls = []

        def compute():
            calls.append(1)
            return ["room"]

        assert cache.get_or_compute("rooms", compute) == ["room"]
        assert cache.get_or_compute("rooms", compute) == ["room"]
        assert len(calls) == 1

    def test_invalidate_forces_recompute(self):
        cache = RoomsViewCache[list](ttl=60)
        cache.get_or_compute("rooms", lambda: ["old"])

        cache.invalidate()

        assert cache.get_or_compute("rooms", lambda: ["new"]) == ["new"]

    def test_version_change_forces_recompute(self):
        cache = RoomsViewCache[list](ttl=60)
        cache.get_or_compute("rooms", lambda: ["old"], version=1)

        assert cache.get_or_compute("rooms", lambda: ["same"], version=1) == ["old"]
        assert cache.get_or_compute("rooms", lambda: ["new"], version=2) == ["new"]

    def test_expired_view_is_recomputed(self):
        cache = RoomsViewCache[list](ttl=1)
        cache.get_or_compute("rooms", lambda: ["old"])

        time.sleep(1.1)

        assert cache.get_or_compute("rooms", lambda: ["new"]) == ["new"]
