"""
tests/conftest.py -- Shared test fixtures for the account service.

This module provides:
  - engine / cache / repos / services: an isolated object graph per test,
    backed by a named in-memory SQLite database and an in-memory SQLite cache
  - _patch_lifespan(): wires a test engine + cache into app.state, bypassing
    the real startup (no Redis, no database file)
  - api_client: TestClient plus an admin JWT for API integration tests

Design: TestClient runs route handlers in a thread pool, so every thread
must see the same in-memory database. init_engine() gives in-memory URLs a
StaticPool (one shared connection), and the uuid in each named URI
(file:name?mode=memory&cache=shared&uri=true) keeps engines from different
fixtures apart.

Environment must be set before any core/auth import: DEBUG lets
get_settings() auto-generate SECRET_KEY and AES_SECRET, and the raised
OAUTH2_RATE_LIMIT keeps the token tests from tripping the limiter.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("OAUTH2_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, wire_state
from auth.cipher import get_cipher
from auth.tokens import create_access_token
from cache.store import SQLiteCache
from core.config import get_settings
from core.models import Register
from db.tables import init_engine
from repository import Repositories, build_repositories
from services import Services, build_services

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _memory_db_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(engine: Engine, cache: SQLiteCache):
    """Return an async context manager that replaces the real lifespan.

    Uses the same wire_state() as production so routes see the real
    repositories and services, only over test resources. The sleeping task
    stands in for the purge loop so shutdown has something real to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, engine, cache, get_settings())
        purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Function-scoped fixtures -- a fresh database and cache per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = init_engine(_memory_db_url("test_db"))
    yield eng
    eng.dispose()


@pytest.fixture
def cache() -> Generator[SQLiteCache, None, None]:
    c = SQLiteCache(":memory:")
    yield c
    c.close()


@pytest.fixture
def repos(engine: Engine, cache: SQLiteCache) -> Repositories:
    return build_repositories(engine, cache, get_settings())


@pytest.fixture
def services(repos: Repositories) -> Services:
    return build_services(repos, get_cipher(), get_settings())


# ---------------------------------------------------------------------------
# Module-scoped fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin account exists in the database so /me works for the admin
    token too. The token is minted directly rather than through /oauth2 so
    route tests do not depend on a seeded admin role.
    """
    settings = get_settings()
    eng = init_engine(_memory_db_url("test_api"))
    cache = SQLiteCache(":memory:")
    seed = build_services(build_repositories(eng, cache, settings), get_cipher(), settings)
    admin = seed.account.create(Register("Admin", "admin@example.com", "admin123", "admin123"))
    token, _ = create_access_token(admin.id, admin.email, settings.admin_scope, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(eng, cache)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    cache.close()
    eng.dispose()
