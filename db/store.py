"""
db/store.py -- SQLAlchemy Core store adapter, one instance per entity table.

Pattern: Repository + Data Mapper. SQLStore owns the SQL for one table;
_row_to_entity is the mapper. Entity field names equal column names, so a
single generic mapper serves Account, Role and AccountRole.

Filter semantics:
  get_one()         -- every non-None filter field must match exactly.
  count()/query()   -- string fields listed in prefix_fields match by prefix
                       (LIKE 'value%'); everything else matches exactly.
  Soft-deleted rows are hidden from every lookup except one that names an id,
  so a retired row stays readable by identity for audit. update() and soft
  delete() match live rows only; a retired row is read-only.

Transactions:
  Each write runs in exactly one transaction that is committed or rolled back
  before the method returns. A failed rollback is logged and never replaces
  the error that caused it.

Security:
  All queries use bound parameters. order_by items are resolved against the
  table's columns and rejected otherwise -- raw strings never reach SQL.

Layer rule: no imports from api/, auth/, cache/, repository/, or services/.
"""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Generic, TypeVar

from sqlalchemy import Table, func, select
from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError

from core import errors
from core.errors import BadRequest, NotFound, StoreError
from core.models import PAGING_FIELDS, Record
from db.tables import AUDIT_COLUMNS

logger = logging.getLogger("accountsvc.db")

E = TypeVar("E", bound=Record)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLStore(Generic[E]):
    """Relational store adapter for a single entity table.

    Usage:
        engine = init_engine("sqlite:///accountsvc.db")
        store = SQLStore(engine, accounts, Account, prefix_fields={"email", "name"})
        account = store.insert(Account(name="a", email="a@b.com", password=hashed))
        same = store.get_one(AccountFilter(id=account.id))
    """

    def __init__(
        self,
        engine: Engine,
        table: Table,
        entity_cls: type[E],
        prefix_fields: frozenset[str] | set[str] = frozenset(),
    ) -> None:
        self.engine = engine
        self.table = table
        self.entity_cls = entity_cls
        self.prefix_fields = frozenset(prefix_fields)
        self._natural_columns = [c.name for c in table.columns if c.name != "id" and c.name not in AUDIT_COLUMNS]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_one(self, param) -> E:
        """Return the first row matching param exactly. Raises NotFound on zero rows."""
        stmt = select(self.table).where(*self._conditions(param, prefix_match=False)).limit(1)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(f"error get {self.table.name}", code=errors.CODE_PSQL_GET) from exc
        if row is None:
            raise NotFound(f"{self.table.name} not found")
        return _row_to_entity(self.entity_cls, row)

    def count(self, param) -> int:
        stmt = select(func.count()).select_from(self.table).where(*self._conditions(param, prefix_match=True))
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar() or 0
        except SQLAlchemyError as exc:
            raise StoreError(f"error count {self.table.name}", code=errors.CODE_PSQL_GET) from exc

    def query(self, param, offset: int, limit: int, order_by: list[str]) -> list[E]:
        """Return one page of rows matching param, ordered by order_by (default: id)."""
        stmt = (
            select(self.table)
            .where(*self._conditions(param, prefix_match=True))
            .order_by(*self._order_by(order_by))
            .offset(offset)
            .limit(limit)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            raise StoreError(f"error get {self.table.name}", code=errors.CODE_PSQL_GET) from exc
        return [_row_to_entity(self.entity_cls, r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: E) -> E:
        """Insert record and return a copy with id and audit timestamps assigned.

        Raises StoreError (insert code) on constraint violations such as a
        duplicate email or client id.
        """
        now = _now_iso()
        values = {name: getattr(record, name) for name in self._natural_columns}
        values.update(
            created_by=record.created_by,
            created_at=now,
            updated_by=record.updated_by,
            updated_at=now,
        )
        result = self._write(self.table.insert().values(**values), errors.CODE_PSQL_INSERT, "insert")
        return replace(
            record,
            id=result.inserted_primary_key[0],
            created_at=now,
            updated_at=now,
            deleted_by=None,
            deleted_at=None,
        )

    def update(self, record: E) -> E:
        """Write the natural fields and updated_by of record; stamp updated_at.

        Only live rows are written. A soft-deleted row raises NotFound.
        """
        now = _now_iso()
        values = {name: getattr(record, name) for name in self._natural_columns}
        values.update(updated_by=record.updated_by, updated_at=now)
        stmt = self.table.update().where(*self._live(record.id)).values(**values)
        result = self._write(stmt, errors.CODE_PSQL_UPDATE, "update")
        if result.rowcount == 0:
            raise NotFound(f"{self.table.name} {record.id} not found")
        return replace(record, updated_at=now)

    def delete(self, record: E, actor_id: int, hard: bool = False) -> None:
        """Soft delete (stamp deleted_by/deleted_at) or hard delete (remove the row).

        A soft delete only matches a live row, so the first deletion's audit
        stamp is never overwritten. A hard delete removes the row either way.
        """
        if hard:
            stmt = self.table.delete().where(self.table.c.id == record.id)
        else:
            stmt = (
                self.table.update()
                .where(*self._live(record.id))
                .values(deleted_by=actor_id, deleted_at=_now_iso())
            )
        result = self._write(stmt, errors.CODE_PSQL_DELETE, "delete")
        if result.rowcount == 0:
            raise NotFound(f"{self.table.name} {record.id} not found")

    def _write(self, statement, code: int, action: str) -> CursorResult:
        """Run one statement inside its own transaction.

        Error codes follow the step that failed: begin -> transaction,
        statement -> code, commit -> commit.
        """
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise StoreError("error begin transaction", code=errors.CODE_PSQL_TRANSACTION) from exc
        with conn:
            try:
                trans = conn.begin()
            except SQLAlchemyError as exc:
                raise StoreError("error begin transaction", code=errors.CODE_PSQL_TRANSACTION) from exc
            try:
                result = conn.execute(statement)
            except SQLAlchemyError as exc:
                try:
                    trans.rollback()
                except SQLAlchemyError:
                    logger.warning("%s %s: rollback failed", action, self.table.name, exc_info=True)
                raise StoreError(f"error {action}", code=code) from exc
            try:
                trans.commit()
            except SQLAlchemyError as exc:
                raise StoreError("error commit", code=errors.CODE_PSQL_COMMIT) from exc
        return result

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    def _live(self, record_id) -> list:
        return [self.table.c.id == record_id, self.table.c.deleted_at.is_(None)]

    def _conditions(self, param, prefix_match: bool) -> list:
        clauses = []
        for f in fields(param):
            if f.name in PAGING_FIELDS:
                continue
            value = getattr(param, f.name)
            if value is None:
                continue
            column = self.table.c[f.name]
            if prefix_match and f.name in self.prefix_fields:
                clauses.append(column.like(f"{_escape_like(value)}%", escape="\\"))
            else:
                clauses.append(column == value)
        if getattr(param, "id", None) is None:
            clauses.append(self.table.c.deleted_at.is_(None))
        return clauses

    def _order_by(self, order_by: list[str]) -> list:
        """Resolve "column" / "column asc|desc" items to ORDER BY clauses.

        Unknown columns or directions raise BadRequest. Falls back to id so
        page boundaries are stable when the caller asks for no ordering.
        """
        clauses = []
        for item in order_by:
            parts = item.split()
            if not parts:
                continue
            name, direction = parts[0], (parts[1].lower() if len(parts) > 1 else "asc")
            if len(parts) > 2 or name not in self.table.c or direction not in ("asc", "desc"):
                raise BadRequest(f"invalid order_by item {item!r}")
            column = self.table.c[name]
            clauses.append(column.desc() if direction == "desc" else column.asc())
        if not clauses:
            clauses.append(self.table.c.id.asc())
        return clauses


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_entity(entity_cls: type[E], row) -> E:
    return entity_cls(**dict(row._mapping))
