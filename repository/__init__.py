"""
repository -- Cache-aside repositories, one per entity.

The per-entity differences are data, not code: table, entity class, which
string fields match by prefix in list queries, the cache key prefixes, and
the TTL / page limit from Settings.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from cache.store import CacheBackend
from core.config import Settings
from core.models import Account, AccountRole, Role
from db.store import SQLStore
from db.tables import account_roles, accounts, roles
from repository.cache_aside import CacheAsideRepository, CacheKeys

ACCOUNT_KEYS = CacheKeys(single="gspAccount:", many="gpAccount:", pagination="gppgAccount:")
ROLE_KEYS = CacheKeys(single="gspRole:", many="gpRole:", pagination="gppgRole:")
ACCOUNT_ROLE_KEYS = CacheKeys(single="gspAccountRole:", many="gpAccountRole:", pagination="gppgAccountRole:")


@dataclass
class Repositories:
    account: CacheAsideRepository[Account]
    role: CacheAsideRepository[Role]
    account_role: CacheAsideRepository[AccountRole]


def build_repositories(engine: Engine, cache: CacheBackend, settings: Settings) -> Repositories:
    """Wire one store + one repository per entity over the shared engine and cache."""
    return Repositories(
        account=CacheAsideRepository(
            SQLStore(engine, accounts, Account, prefix_fields={"email", "name"}),
            cache,
            Account,
            ACCOUNT_KEYS,
            ttl=settings.account_cache_ttl_seconds,
            page_limit=settings.account_page_limit,
        ),
        role=CacheAsideRepository(
            SQLStore(engine, roles, Role, prefix_fields={"scope", "cid"}),
            cache,
            Role,
            ROLE_KEYS,
            ttl=settings.role_cache_ttl_seconds,
            page_limit=settings.role_page_limit,
        ),
        account_role=CacheAsideRepository(
            SQLStore(engine, account_roles, AccountRole),
            cache,
            AccountRole,
            ACCOUNT_ROLE_KEYS,
            ttl=settings.account_role_cache_ttl_seconds,
            page_limit=settings.account_role_page_limit,
        ),
    )
