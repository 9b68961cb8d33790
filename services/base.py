"""
services/base.py -- Read and delete use-cases shared by every entity.

Writes never touch the cache directly. After an update or soft delete the
service re-reads the row by id with must-revalidate, which replaces the by-id
cache entry with the committed state. After a hard delete there is nothing to
re-read, so the by-id entry is evicted instead. List entries are left to
expire on their TTL.

A soft-deleted row stays readable by id but is never written again: every
write path loads its row through get_live_by_id(), which answers NotFound
for a retired row. Only a hard delete may still remove it.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from core.errors import NotFound
from core.models import MUST_REVALIDATE, Pagination, Record
from repository.cache_aside import CacheAsideRepository

logger = logging.getLogger("accountsvc.services")

E = TypeVar("E", bound=Record)


class EntityService(Generic[E]):
    """Base for AccountService, RoleService and AccountRoleService.

    filter_cls is the single-row filter type whose id field addresses a row.
    """

    filter_cls: type

    def __init__(self, repo: CacheAsideRepository[E]) -> None:
        self.repo = repo

    def get_by_param(self, cache_control: str | None, param: Any) -> tuple[list[E], Pagination]:
        return self.repo.get_by_param(cache_control, param)

    def get_by_id(self, cache_control: str | None, entity_id: int) -> E:
        return self.repo.get_single_by_param(cache_control, self.filter_cls(id=entity_id))

    def get_live_by_id(self, entity_id: int) -> E:
        """Fresh read by id that treats a soft-deleted row as absent."""
        record = self.get_by_id(MUST_REVALIDATE, entity_id)
        if record.deleted_at is not None:
            raise NotFound(f"{type(record).__name__} {entity_id} is deleted")
        return record

    def delete_by_id(self, entity_id: int, actor_id: int, hard: bool = False) -> None:
        """Soft delete by default. Raises NotFound if no row has entity_id, or
        if a soft delete targets a row that is already deleted."""
        if hard:
            record = self.get_by_id(MUST_REVALIDATE, entity_id)
        else:
            record = self.get_live_by_id(entity_id)
        self.repo.delete(record, actor_id, hard)
        logger.info(
            "%s %d deleted by %d (hard=%s)", type(record).__name__, entity_id, actor_id, hard
        )
        if hard:
            self.repo.evict(self.filter_cls(id=entity_id))
        else:
            self.get_by_id(MUST_REVALIDATE, entity_id)

    def _save(self, record: E) -> E:
        """Update record, then refresh its by-id cache entry from the store."""
        self.repo.update(record)
        return self.get_by_id(MUST_REVALIDATE, record.id)
