"""
services -- Use-case layer.

Each service validates input, assembles entities and delegates to its
cache-aside repository. The caller's identity arrives as an explicit
actor_id argument; services never read request state.

Layer rule: no imports from api/. Repositories and the cipher are passed in.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.cipher import SecretCipher
from core.config import Settings
from repository import Repositories
from services.account_roles import AccountRoleService
from services.accounts import AccountService
from services.roles import RoleService


@dataclass
class Services:
    account: AccountService
    role: RoleService
    account_role: AccountRoleService


def build_services(repos: Repositories, cipher: SecretCipher, settings: Settings) -> Services:
    return Services(
        account=AccountService(
            repos.account,
            repos.role,
            repos.account_role,
            cipher,
            token_timeout_seconds=settings.token_timeout_seconds,
        ),
        role=RoleService(repos.role, cipher),
        account_role=AccountRoleService(repos.account_role),
    )
