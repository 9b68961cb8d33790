"""
repository/cache_aside.py -- Generic cache-aside repository.

One implementation, instantiated once per entity (see repository/__init__.py).
The relational store is authoritative; the cache is a best-effort accelerator
that is only ever filled after a store read.

Read path (get_single_by_param / get_by_param):
  cache_control == "must-revalidate"
      store read -> refresh cache -> return
  anything else
      cache hit            -> return cached value, store untouched
      cache miss (None)    -> store read -> populate cache -> return
      cache failure        -> CacheError, no fall-through to the store

  get_by_param caches the page and its Pagination under two keys. Both must
  hit for a cache hit; otherwise both are re-read and re-written.

  When the store read succeeds but warming the cache fails, CacheRefreshError
  is raised with the fetched value attached (.value). It is never swallowed.

Write path (insert / update / delete):
  Store only. The repository does not know which cache keys mention a given
  id, so writes leave cached reads in place until they expire or a
  must-revalidate read replaces them. evict() lets the caller drop a
  single-row key explicitly.

Keys: prefix + canonical JSON of the filter (sorted keys, no whitespace).
Prefixes are injected per entity through CacheKeys so unrelated query shapes
never collide.

Layer rule: no imports from api/ or services/. Store and cache are passed in.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Generic, Protocol, TypeVar

from cache.store import CacheBackend
from core.config import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_PAGE_LIMIT
from core.errors import CacheError, CacheRefreshError
from core.models import MUST_REVALIDATE, Pagination, Record

logger = logging.getLogger("accountsvc.repository")

E = TypeVar("E", bound=Record)


@dataclass(frozen=True)
class CacheKeys:
    """Key prefixes for one entity: single-row get, list get, list pagination."""

    single: str
    many: str
    pagination: str


class Store(Protocol[E]):
    def get_one(self, param: Any) -> E: ...

    def count(self, param: Any) -> int: ...

    def query(self, param: Any, offset: int, limit: int, order_by: list[str]) -> list[E]: ...

    def insert(self, record: E) -> E: ...

    def update(self, record: E) -> E: ...

    def delete(self, record: E, actor_id: int, hard: bool = False) -> None: ...


def canonical_json(param: Any) -> str:
    return json.dumps(asdict(param), sort_keys=True, separators=(",", ":"), default=str)


def total_pages(total_elements: int, limit: int) -> int:
    """floor(total / limit) + 1, or 1 for an empty result.

    Exact multiples of limit produce one trailing empty page (20 rows at
    limit 10 -> 3 pages). Clients already page until current_elements == 0,
    so the formula is kept as is.
    """
    if total_elements > 0:
        return total_elements // limit + 1
    return 1


class CacheAsideRepository(Generic[E]):
    """Single read path and single write path for one entity type.

    Usage:
        repo = CacheAsideRepository(store, cache, Account, ACCOUNT_KEYS, ttl=300, page_limit=10)
        account = repo.get_single_by_param("", AccountFilter(id=1))           # cache-aside
        account = repo.get_single_by_param(MUST_REVALIDATE, AccountFilter(id=1))  # forced fresh
        page, pagination = repo.get_by_param("", AccountListFilter(name="a", page=2))
    """

    def __init__(
        self,
        store: Store[E],
        cache: CacheBackend,
        entity_cls: type[E],
        keys: CacheKeys,
        ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self.store = store
        self.cache = cache
        self.entity_cls = entity_cls
        self.keys = keys
        self.ttl = ttl if ttl > 0 else DEFAULT_CACHE_TTL_SECONDS
        self.page_limit = page_limit if page_limit > 0 else DEFAULT_PAGE_LIMIT

    # ------------------------------------------------------------------
    # Writes -- store only
    # ------------------------------------------------------------------

    def insert(self, record: E) -> E:
        return self.store.insert(record)

    def update(self, record: E) -> E:
        return self.store.update(record)

    def delete(self, record: E, actor_id: int, hard: bool = False) -> None:
        self.store.delete(record, actor_id, hard)

    def evict(self, param: Any) -> None:
        """Drop the single-row cache entry for param."""
        self.cache.delete(self.keys.single + canonical_json(param))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_single_by_param(self, cache_control: str | None, param: Any) -> E:
        key = self.keys.single + canonical_json(param)
        if cache_control != MUST_REVALIDATE:
            cached = self.cache.get(key)
            if cached is not None:
                return self._decode_entity(cached)
            logger.debug("cache miss %s", key)

        record = self.store.get_one(param)
        try:
            self.cache.set(key, json.dumps(asdict(record)), self.ttl)
        except CacheError as exc:
            raise CacheRefreshError(f"error set cache {key}: {exc.cause}", value=record) from exc
        return record

    def get_by_param(self, cache_control: str | None, param: Any) -> tuple[list[E], Pagination]:
        param = self._with_paging_defaults(param)
        canonical = canonical_json(param)
        key = self.keys.many + canonical
        key_pg = self.keys.pagination + canonical

        if cache_control != MUST_REVALIDATE:
            cached = self.cache.get(key)
            cached_pg = self.cache.get(key_pg)
            if cached is not None and cached_pg is not None:
                return self._decode_list(cached), self._decode_pagination(cached_pg)
            logger.debug("cache miss %s", key)

        records, pagination = self._query_page(param)
        try:
            self.cache.set(key, json.dumps([asdict(r) for r in records]), self.ttl)
            self.cache.set(key_pg, json.dumps(asdict(pagination)), self.ttl)
        except CacheError as exc:
            raise CacheRefreshError(f"error set cache {key}: {exc.cause}", value=(records, pagination)) from exc
        return records, pagination

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_paging_defaults(self, param: Any) -> Any:
        """Fill page/limit defaults before the key is derived.

        page=0 and page=1 name the same page, so they must share a cache key.
        """
        return replace(
            param,
            page=param.page if param.page > 0 else 1,
            limit=param.limit if param.limit > 0 else self.page_limit,
        )

    def _query_page(self, param: Any) -> tuple[list[E], Pagination]:
        order_by = [item.strip() for item in (param.order_by or "").split(",") if item.strip()]
        total = self.store.count(param)
        records = self.store.query(param, offset=(param.page - 1) * param.limit, limit=param.limit, order_by=order_by)
        pagination = Pagination(
            current_page=param.page,
            current_elements=len(records),
            total_pages=total_pages(total, param.limit),
            total_elements=total,
            sort_by=param.order_by or "",
        )
        return records, pagination

    def _decode_entity(self, raw: str) -> E:
        return self._decode(raw, self._to_entity)

    def _decode_list(self, raw: str) -> list[E]:
        return self._decode(raw, lambda data: [self._to_entity(item) for item in data])

    def _decode_pagination(self, raw: str) -> Pagination:
        return self._decode(raw, lambda data: Pagination(**data))

    def _to_entity(self, data: dict) -> E:
        names = {f.name for f in fields(self.entity_cls)}
        return self.entity_cls(**{k: v for k, v in data.items() if k in names})

    @staticmethod
    def _decode(raw: str, build):
        try:
            return build(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            raise CacheError(f"error decode cached value: {exc}") from exc
