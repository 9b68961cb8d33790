"""
db/tables.py -- SQLAlchemy Core schema and engine factory.

One table per entity. Every table carries the same audit block:
created_by/at, updated_by/at, deleted_by/at. Timestamps are ISO 8601 strings
in UTC (String(32)), matching the representation in core/models.py.

Schema evolution is out of scope: init_engine() runs create_all, which only
creates missing tables and never alters existing ones.

Layer rule: no imports from api/, auth/, cache/, repository/, or services/.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

AUDIT_COLUMNS = frozenset({"created_by", "created_at", "updated_by", "updated_at", "deleted_by", "deleted_at"})

_metadata = MetaData()


def _audit_columns() -> list[Column]:
    # Column objects cannot be shared between tables -- build a fresh set each call.
    return [
        Column("created_by", Integer, nullable=False, server_default="0"),
        Column("created_at", String(32), nullable=False),
        Column("updated_by", Integer, nullable=False, server_default="0"),
        Column("updated_at", String(32), nullable=False),
        Column("deleted_by", Integer),
        Column("deleted_at", String(32)),  # NULL = live row
    ]


accounts = Table(
    "account",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    *_audit_columns(),
)

roles = Table(
    "role",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("scope", String(30), nullable=False),
    Column("cid", String(255), nullable=False, unique=True),
    Column("sec", Text, nullable=False),  # Fernet token, never plaintext
    *_audit_columns(),
)

account_roles = Table(
    "account_role",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, ForeignKey("account.id"), nullable=False, index=True),
    Column("role_id", Integer, ForeignKey("role.id"), nullable=False, index=True),
    *_audit_columns(),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def is_sqlite_memory(db_url: str) -> bool:
    url = make_url(db_url)
    if not url.drivername.startswith("sqlite"):
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def init_engine(db_url: str) -> Engine:
    """Create the pooled engine for db_url and make sure all tables exist.

    In-memory SQLite gets a StaticPool: one connection holds the database for
    the engine's lifetime and every thread shares it.
    """
    connect_args: dict = {}
    engine_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    if is_sqlite_memory(db_url):
        engine_args["poolclass"] = StaticPool
    engine = create_engine(
        db_url,
        connect_args=connect_args,
        pool_pre_ping=not db_url.startswith("sqlite"),
        **engine_args,
    )
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine
