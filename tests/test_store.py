"""
tests/test_store.py -- Unit tests for the SQLAlchemy store adapter.

Covers:
  - insert assigns id and audit timestamps
  - get_one matches exactly; count/query match prefix fields by prefix
  - soft delete hides a row from every lookup except by id; hard delete removes it
  - order_by whitelist (unknown column / direction -> BadRequest)
  - constraint violations and transaction failures map to StoreError codes
  - a failed rollback is logged at WARNING and the statement's error is raised
  - a soft-deleted row is read-only
  - in-memory SQLite URLs get an explicit StaticPool
"""

from __future__ import annotations

import logging
import warnings
from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SADeprecationWarning, SAWarning, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from core.errors import BadRequest, NotFound, StoreError
from core.models import Account, AccountFilter, AccountListFilter
from db.store import SQLStore
from db.tables import accounts, init_engine, is_sqlite_memory


@pytest.fixture
def store(engine) -> SQLStore[Account]:
    return SQLStore(engine, accounts, Account, prefix_fields={"email", "name"})


def _account(name: str, email: str | None = None) -> Account:
    return Account(name=name, email=email or f"{name}@example.com", password="x", created_by=7, updated_by=7)


class TestReads:
    def test_insert_assigns_id_and_timestamps(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        assert saved.id is not None
        assert saved.created_at is not None
        assert saved.created_at == saved.updated_at
        assert saved.created_by == 7
        assert saved.deleted_at is None

    def test_get_one_exact_match(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        assert store.get_one(AccountFilter(email="alice@example.com")) == saved

    def test_get_one_does_not_prefix_match(self, store: SQLStore) -> None:
        store.insert(_account("alice"))
        with pytest.raises(NotFound):
            store.get_one(AccountFilter(name="ali"))

    def test_query_prefix_match(self, store: SQLStore) -> None:
        for name in ("alice", "alina", "bob"):
            store.insert(_account(name))
        param = AccountListFilter(name="al")
        assert store.count(param) == 2
        rows = store.query(param, offset=0, limit=10, order_by=[])
        assert [r.name for r in rows] == ["alice", "alina"]

    def test_prefix_match_escapes_wildcards(self, store: SQLStore) -> None:
        store.insert(_account("a_b"))
        store.insert(_account("axb"))
        assert store.count(AccountListFilter(name="a_")) == 1

    def test_query_offset_and_limit(self, store: SQLStore) -> None:
        for i in range(5):
            store.insert(_account(f"user{i}"))
        rows = store.query(AccountListFilter(), offset=2, limit=2, order_by=[])
        assert [r.name for r in rows] == ["user2", "user3"]

    def test_order_by_desc(self, store: SQLStore) -> None:
        for name in ("b", "a", "c"):
            store.insert(_account(name))
        rows = store.query(AccountListFilter(), offset=0, limit=10, order_by=["name desc"])
        assert [r.name for r in rows] == ["c", "b", "a"]

    @pytest.mark.parametrize("item", ["nope", "name sideways", "name asc extra", "id; DROP TABLE account"])
    def test_order_by_rejects_unknown(self, store: SQLStore, item: str) -> None:
        with pytest.raises(BadRequest):
            store.query(AccountListFilter(), offset=0, limit=10, order_by=[item])


class TestWrites:
    def test_update_stamps_updated_fields(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        saved.name = "alicia"
        saved.updated_by = 9
        store.update(saved)
        fresh = store.get_one(AccountFilter(id=saved.id))
        assert fresh.name == "alicia"
        assert fresh.updated_by == 9
        assert fresh.created_by == 7

    def test_update_missing_row(self, store: SQLStore) -> None:
        with pytest.raises(NotFound):
            store.update(Account(id=999, name="ghost", email="g@example.com"))

    def test_soft_delete_keeps_row_readable_by_id(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        store.delete(saved, actor_id=3)
        by_id = store.get_one(AccountFilter(id=saved.id))
        assert by_id.deleted_by == 3
        assert by_id.deleted_at is not None
        with pytest.raises(NotFound):
            store.get_one(AccountFilter(email="alice@example.com"))
        assert store.count(AccountListFilter()) == 0

    def test_soft_deleted_row_is_read_only(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        store.delete(saved, actor_id=3)
        stamped = store.get_one(AccountFilter(id=saved.id))

        with pytest.raises(NotFound):
            store.delete(stamped, actor_id=4)
        with pytest.raises(NotFound):
            store.update(Account(id=saved.id, name="zombie", email="alice@example.com", password="x"))

        after = store.get_one(AccountFilter(id=saved.id))
        assert (after.name, after.deleted_by, after.deleted_at) == ("alice", 3, stamped.deleted_at)

    def test_hard_delete_removes_row(self, store: SQLStore) -> None:
        saved = store.insert(_account("alice"))
        store.delete(saved, actor_id=3, hard=True)
        with pytest.raises(NotFound):
            store.get_one(AccountFilter(id=saved.id))

    def test_duplicate_email_is_insert_error(self, store: SQLStore) -> None:
        store.insert(_account("alice"))
        with pytest.raises(StoreError) as exc_info:
            store.insert(_account("other", email="alice@example.com"))
        assert exc_info.value.code == 40004


class TestTransactionFailures:
    @staticmethod
    def _broken_engine() -> tuple[MagicMock, MagicMock, MagicMock]:
        engine, conn, trans = MagicMock(), MagicMock(), MagicMock()
        engine.connect.return_value = conn
        conn.__exit__.return_value = False  # never swallow exceptions
        conn.begin.return_value = trans
        return engine, conn, trans

    def test_rollback_failure_is_logged_and_statement_error_raised(self, caplog) -> None:
        engine, conn, trans = self._broken_engine()
        conn.execute.side_effect = SQLAlchemyError("insert exploded")
        trans.rollback.side_effect = SQLAlchemyError("rollback exploded")
        store = SQLStore(engine, accounts, Account)

        with caplog.at_level(logging.WARNING, logger="accountsvc.db"):
            with pytest.raises(StoreError) as exc_info:
                store.insert(_account("alice"))

        assert exc_info.value.code == 40004
        assert "insert exploded" in str(exc_info.value.__cause__)
        assert any("rollback failed" in r.getMessage() for r in caplog.records)

    def test_failed_statement_rolls_back(self) -> None:
        engine, conn, trans = self._broken_engine()
        conn.execute.side_effect = SQLAlchemyError("boom")
        with pytest.raises(StoreError) as exc_info:
            SQLStore(engine, accounts, Account).update(Account(id=1, name="a", email="a@example.com"))
        assert exc_info.value.code == 40005
        trans.rollback.assert_called_once()
        trans.commit.assert_not_called()

    def test_commit_failure(self) -> None:
        engine, conn, trans = self._broken_engine()
        trans.commit.side_effect = SQLAlchemyError("disk full")
        with pytest.raises(StoreError) as exc_info:
            SQLStore(engine, accounts, Account).delete(Account(id=1), actor_id=1)
        assert exc_info.value.code == 40002

    def test_connect_failure_is_transaction_error(self) -> None:
        engine = MagicMock()
        engine.connect.side_effect = SQLAlchemyError("pool exhausted")
        with pytest.raises(StoreError) as exc_info:
            SQLStore(engine, accounts, Account).insert(_account("alice"))
        assert exc_info.value.code == 40001


class TestInitEngine:
    @pytest.mark.parametrize(
        "url",
        ["sqlite://", "sqlite:///:memory:", "sqlite:///file:pool_check?mode=memory&cache=shared&uri=true"],
    )
    def test_memory_urls_use_static_pool_without_warnings(self, url: str) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", SADeprecationWarning)
            warnings.simplefilter("error", SAWarning)
            engine = init_engine(url)
        try:
            assert isinstance(engine.pool, StaticPool)
            # Separate connections see the same database.
            with engine.connect() as conn:
                assert conn.execute(text("SELECT COUNT(*) FROM account")).scalar() == 0
        finally:
            engine.dispose()

    def test_file_url_keeps_default_pool(self, tmp_path) -> None:
        engine = init_engine(f"sqlite:///{tmp_path / 'accounts.db'}")
        try:
            assert not isinstance(engine.pool, StaticPool)
            assert not is_sqlite_memory(str(engine.url))
        finally:
            engine.dispose()
