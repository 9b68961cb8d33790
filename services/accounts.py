"""
services/accounts.py -- Account use-cases, including token issuance.

oauth2() is the credential verification flow. Its stages run in a fixed order
and the first failure ends the call:

  1. validate the login payload                      -> BadRequest (sub-code)
  2. role by client id (forced fresh)                -> NotAuthorized
  3. decrypt the stored client secret and compare    -> NotAuthorized
  4. account by email (forced fresh)                 -> NotAuthorized
  5. account-role link for (account, role)           -> NotAuthorized
  6. bcrypt check of the password                    -> PasswordMismatch
  7. sign an HS512 token for the role's scope

Stages 2 to 5 report the same code and message, so a caller cannot tell an
unknown client from a wrong secret, an unknown email or a missing link. Each
of those rejections also spends one bcrypt check so the response time does
not separate them from stage 6 either. Only NotFound is mapped to
NotAuthorized; store and cache failures propagate unchanged.
"""

from __future__ import annotations

import logging

from auth.cipher import SecretCipher
from auth.tokens import burn_password_check, create_access_token, hash_password, verify_password
from core.errors import NotAuthorized, NotFound, PasswordMismatch
from core.models import (
    MUST_REVALIDATE,
    TOKEN_TYPE_BEARER,
    Account,
    AccountFilter,
    AccountRole,
    AccountRoleFilter,
    Auth,
    Login,
    Register,
    Role,
    RoleFilter,
    UpdateAccountData,
    UpdatePasswordData,
)
from repository.cache_aside import CacheAsideRepository
from services import validation
from services.base import EntityService

logger = logging.getLogger("accountsvc.services.accounts")


class AccountService(EntityService[Account]):
    """Usage:
    svc = AccountService(repos.account, repos.role, repos.account_role, get_cipher())
    account = svc.create(Register("a", "a@b.com", "pass1", "pass1"))
    auth = svc.oauth2(Login("a@b.com", "pass1", client_id="c1", client_secret="s1"))
    """

    filter_cls = AccountFilter

    def __init__(
        self,
        repo: CacheAsideRepository[Account],
        role_repo: CacheAsideRepository[Role],
        account_role_repo: CacheAsideRepository[AccountRole],
        cipher: SecretCipher,
        token_timeout_seconds: int = 0,
    ) -> None:
        super().__init__(repo)
        self.role_repo = role_repo
        self.account_role_repo = account_role_repo
        self.cipher = cipher
        self.token_timeout_seconds = token_timeout_seconds

    # ------------------------------------------------------------------
    # Token issuance
    # ------------------------------------------------------------------

    def oauth2(self, v: Login) -> Auth:
        validation.validate_login(v)

        try:
            role = self.role_repo.get_single_by_param(MUST_REVALIDATE, RoleFilter(cid=v.client_id))
        except NotFound as exc:
            raise self._rejection(v, "role not found") from exc

        if not self.cipher.matches(role.sec, v.client_secret):
            raise self._rejection(v, "invalid client id/client secret")

        try:
            account = self.repo.get_single_by_param(MUST_REVALIDATE, AccountFilter(email=v.email))
        except NotFound as exc:
            raise self._rejection(v, "account not found") from exc

        try:
            self.account_role_repo.get_single_by_param(
                MUST_REVALIDATE, AccountRoleFilter(account_id=account.id, role_id=role.id)
            )
        except NotFound as exc:
            raise self._rejection(v, "account is not assigned to role") from exc

        if not verify_password(v.password, account.password):
            raise PasswordMismatch("password not match")

        token, expire = create_access_token(account.id, account.email, role.scope, self.token_timeout_seconds)
        logger.info("Token issued for account %d (scope=%s)", account.id, role.scope)
        return Auth(access_token=token, token_type=TOKEN_TYPE_BEARER, exp=expire, scope=role.scope)

    @staticmethod
    def _rejection(v: Login, reason: str) -> NotAuthorized:
        # reason is logged only; every rejection carries the same cause.
        burn_password_check(v.password)
        logger.info("oauth2 rejected for client %r: %s", v.client_id, reason)
        return NotAuthorized("invalid client id/client secret")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, v: Register, actor_id: int = 0) -> Account:
        """Register an account. actor_id 0 means self-registration.

        A duplicate email surfaces as StoreError (insert code) from the
        unique constraint.
        """
        validation.validate_register(v)
        account = Account(
            name=v.name,
            email=v.email,
            password=hash_password(v.password),
            created_by=actor_id,
            updated_by=actor_id,
        )
        return self.repo.insert(account)

    def update_by_id(self, account_id: int, v: UpdateAccountData, actor_id: int) -> Account:
        """Rename the account. An unchanged name writes nothing."""
        validation.validate_update_account(v)
        account = self.get_live_by_id(account_id)
        if v.name == account.name:
            return account
        account.name = v.name
        account.updated_by = actor_id
        return self._save(account)

    def update_password_by_id(self, account_id: int, v: UpdatePasswordData, actor_id: int) -> Account:
        validation.validate_update_password(v)
        account = self.get_live_by_id(account_id)
        account.password = hash_password(v.password)
        account.updated_by = actor_id
        return self._save(account)
