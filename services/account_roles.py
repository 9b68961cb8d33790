"""
services/account_roles.py -- Links between accounts and roles.

A link is what lets an account obtain a token through a role's client
credentials. Links are created and deleted, never edited.
"""

from __future__ import annotations

from core.models import AccountRole, AccountRoleFilter, CreateAccountRole
from services import validation
from services.base import EntityService


class AccountRoleService(EntityService[AccountRole]):
    filter_cls = AccountRoleFilter

    def create(self, v: CreateAccountRole, actor_id: int) -> AccountRole:
        validation.validate_create_account_role(v)
        link = AccountRole(
            account_id=v.account_id,
            role_id=v.role_id,
            created_by=actor_id,
            updated_by=actor_id,
        )
        return self.repo.insert(link)
