"""
cache/store.py -- Key/value cache backends for the cache-aside repositories.

Two backends share one contract (CacheBackend):

  get(key)              -> str, or None on a miss. A miss is not an error.
  set(key, value, ttl)  -> deletes the old value, then stores value for ttl
                           seconds. Entries are never overwritten in place.
  delete(key)           -> removes the entry if present.

Any backend failure (connection, timeout, SQLite error) raises CacheError so
the repository can tell "not cached" from "cache is broken".

RedisCache is the production backend (shared across workers). SQLiteCache
keeps entries in a local SQLite file or in memory and is meant for
single-process development and tests.

Usage:
    cache = create_cache("redis://localhost:6379/0")
    cache.set("gspAccount:{...}", payload, ttl=300)
    cache.get("gspAccount:{...}")     # payload, or None once expired
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from typing import Optional, Protocol

import redis

from core.errors import CacheError

logger = logging.getLogger("accountsvc.cache")

DEFAULT_TTL = 5 * 60  # seconds

_DDL = """
CREATE TABLE IF NOT EXISTS cache_entry (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


class SQLiteCache:
    def __init__(self, db_path: str = ":memory:", ttl: int = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, key: str) -> Optional[str]:
        """Return the cached value if it exists and hasn't expired."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value, expires_at FROM cache_entry WHERE key = ?",
                    (key,),
                ).fetchone()
                if row is None:
                    return None
                value, expires_at = row
                if time.time() >= expires_at:
                    self._conn.execute("DELETE FROM cache_entry WHERE key = ?", (key,))
                    self._conn.commit()
                    return None
                return value
        except sqlite3.Error as exc:
            raise CacheError(f"sqlite cache get failed: {exc}") from exc

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Invalidate key, then store value for ttl seconds (default: self.ttl)."""
        expires_at = time.time() + (ttl if ttl is not None else self.ttl)
        try:
            with self._lock:
                self._conn.execute("DELETE FROM cache_entry WHERE key = ?", (key,))
                self._conn.execute(
                    "INSERT INTO cache_entry (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, value, expires_at),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"sqlite cache set failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM cache_entry WHERE key = ?", (key,))
                self._conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"sqlite cache delete failed: {exc}") from exc

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM cache_entry WHERE expires_at <= ?", (time.time(),))
            self._conn.commit()
        return cursor.rowcount

    def ping(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1")
        except sqlite3.Error:
            return False
        return True

    def close(self) -> None:
        self._conn.close()


class RedisCache:
    """Redis-backed cache. Expiry is enforced by Redis itself (SET ... EX ttl).

    client may be injected (tests pass a MagicMock); otherwise one is built
    from redis_url with a bounded connection pool.
    """

    def __init__(self, redis_url: str = "", ttl: int = DEFAULT_TTL, client: Optional[redis.Redis] = None) -> None:
        self.ttl = ttl
        self._client = client or redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"redis get failed: {exc}") from exc

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            self._client.delete(key)
            self._client.set(key, value, ex=ttl if ttl is not None else self.ttl)
        except redis.RedisError as exc:
            raise CacheError(f"redis set failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            raise CacheError(f"redis delete failed: {exc}") from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    def close(self) -> None:
        self._client.close()


def create_cache(cache_url: str, ttl: int = DEFAULT_TTL) -> CacheBackend:
    """Pick a backend from the URL scheme.

    redis:// rediss:// unix://  -> RedisCache
    memory://                   -> in-memory SQLiteCache
    sqlite:///path/to/file.db   -> file-backed SQLiteCache
    """
    if cache_url.startswith(("redis://", "rediss://", "unix://")):
        return RedisCache(cache_url, ttl=ttl)
    if cache_url == "memory://":
        return SQLiteCache(":memory:", ttl=ttl)
    if cache_url.startswith("sqlite:///"):
        return SQLiteCache(cache_url[len("sqlite:///") :], ttl=ttl)
    raise ValueError(f"Unsupported CACHE_URL scheme: {cache_url!r}")
