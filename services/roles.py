"""
services/roles.py -- Role use-cases.

A role pairs a client application (cid + secret) with the scope its tokens
carry. The secret is encrypted with SecretCipher before it reaches the store
and is re-encrypted whenever an update supplies a new one.
"""

from __future__ import annotations

from auth.cipher import SecretCipher
from core.models import CreateRole, Role, RoleFilter, UpdateRole
from repository.cache_aside import CacheAsideRepository
from services import validation
from services.base import EntityService


class RoleService(EntityService[Role]):
    filter_cls = RoleFilter

    def __init__(self, repo: CacheAsideRepository[Role], cipher: SecretCipher) -> None:
        super().__init__(repo)
        self.cipher = cipher

    def create(self, v: CreateRole, actor_id: int) -> Role:
        validation.validate_create_role(v)
        role = Role(
            scope=v.scope,
            cid=v.cid,
            sec=self.cipher.encrypt(v.sec),
            created_by=actor_id,
            updated_by=actor_id,
        )
        return self.repo.insert(role)

    def update_by_id(self, role_id: int, v: UpdateRole, actor_id: int) -> Role:
        """Partial update. Fields left as None keep their stored value."""
        role = self.get_live_by_id(role_id)
        if v.scope is None and v.cid is None and v.sec is None:
            return role
        if v.scope is not None:
            role.scope = v.scope
        if v.cid is not None:
            role.cid = v.cid
        if v.sec is not None:
            role.sec = self.cipher.encrypt(v.sec)
        role.updated_by = actor_id
        return self._save(role)
