"""
tests/test_cache_store.py -- Unit tests for the cache backends.

Covers:
  - SQLiteCache: miss is None, set/get, set replaces, TTL expiry, delete, purge
  - SQLiteCache: backend failure raises CacheError, not a miss
  - RedisCache: delete-then-set ordering with EX ttl, RedisError -> CacheError
  - create_cache: URL scheme dispatch
"""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest
import redis

from cache.store import RedisCache, SQLiteCache, create_cache
from core.errors import CacheError


class TestSQLiteCache:
    def test_miss_returns_none(self, cache: SQLiteCache) -> None:
        assert cache.get("gspAccount:{}") is None

    def test_set_then_get(self, cache: SQLiteCache) -> None:
        cache.set("k", "v1")
        assert cache.get("k") == "v1"

    def test_set_replaces_existing_value(self, cache: SQLiteCache) -> None:
        cache.set("k", "v1")
        cache.set("k", "v2")
        assert cache.get("k") == "v2"

    def test_expired_entry_is_a_miss(self, cache: SQLiteCache) -> None:
        cache.set("k", "v1", ttl=0)
        assert cache.get("k") is None

    def test_delete(self, cache: SQLiteCache) -> None:
        cache.set("k", "v1")
        cache.delete("k")
        assert cache.get("k") is None

    def test_delete_missing_key_is_noop(self, cache: SQLiteCache) -> None:
        cache.delete("never-set")

    def test_purge_expired_removes_only_expired(self, cache: SQLiteCache) -> None:
        cache.set("old", "v", ttl=0)
        cache.set("fresh", "v", ttl=300)
        assert cache.purge_expired() == 1
        assert cache.get("fresh") == "v"

    def test_ping(self, cache: SQLiteCache) -> None:
        assert cache.ping() is True

    def test_failure_raises_cache_error(self) -> None:
        broken = SQLiteCache(":memory:")
        broken.close()
        with pytest.raises(CacheError) as exc_info:
            broken.get("k")
        assert exc_info.value.code == 50001
        assert exc_info.value.status_code == 500


class TestRedisCache:
    def test_get_passes_through(self) -> None:
        client = MagicMock()
        client.get.return_value = "payload"
        assert RedisCache(client=client).get("k") == "payload"
        client.get.assert_called_once_with("k")

    def test_miss_returns_none(self) -> None:
        client = MagicMock()
        client.get.return_value = None
        assert RedisCache(client=client).get("k") is None

    def test_set_deletes_before_setting_with_ttl(self) -> None:
        client = MagicMock()
        RedisCache(client=client, ttl=30).set("k", "v")
        assert client.method_calls == [call.delete("k"), call.set("k", "v", ex=30)]

    def test_explicit_ttl_overrides_default(self) -> None:
        client = MagicMock()
        RedisCache(client=client, ttl=30).set("k", "v", ttl=5)
        client.set.assert_called_once_with("k", "v", ex=5)

    def test_redis_error_becomes_cache_error(self) -> None:
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("connection refused")
        with pytest.raises(CacheError, match="redis get failed"):
            RedisCache(client=client).get("k")

    def test_set_failure_becomes_cache_error(self) -> None:
        client = MagicMock()
        client.set.side_effect = redis.TimeoutError("timeout")
        with pytest.raises(CacheError):
            RedisCache(client=client).set("k", "v")

    def test_ping_failure_returns_false(self) -> None:
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("down")
        assert RedisCache(client=client).ping() is False


class TestCreateCache:
    def test_memory_url(self) -> None:
        c = create_cache("memory://")
        assert isinstance(c, SQLiteCache)
        c.close()

    def test_sqlite_url(self, tmp_path) -> None:
        c = create_cache(f"sqlite:///{tmp_path / 'cache.db'}")
        assert isinstance(c, SQLiteCache)
        c.set("k", "v")
        assert c.get("k") == "v"
        c.close()

    def test_redis_url(self) -> None:
        # from_url does not connect until the first command.
        assert isinstance(create_cache("redis://localhost:6379/0"), RedisCache)

    def test_unknown_scheme(self) -> None:
        with pytest.raises(ValueError, match="Unsupported CACHE_URL"):
            create_cache("memcached://localhost")
