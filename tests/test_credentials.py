"""
tests/test_credentials.py -- The token issuance flow in AccountService.oauth2.

Fixture `seeded` creates account a@b.com / pass1, role (scope "admin",
cid "c1", secret "s1") and the link between them.

Covers:
  - happy path: scope, token type, signed claims, expiry
  - validation sub-codes in their fixed order
  - unknown client, wrong secret, unknown email and missing link are
    indistinguishable (same code, message and cause)
  - the membership stage fails before the password stage
  - wrong password -> PasswordMismatch (40015, HTTP 401)
  - lookups are forced fresh: a stale cached role does not decide the outcome
  - store failures propagate instead of turning into NotAuthorized
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from auth.cipher import get_cipher
from auth.tokens import decode_access_token
from core.errors import BadRequest, NotAuthorized, PasswordMismatch, StoreError
from core.models import (
    Account,
    AccountRoleListFilter,
    CreateAccountRole,
    CreateRole,
    Login,
    Register,
    Role,
    RoleFilter,
)
from services import Services


@dataclass
class Seeded:
    services: Services
    account: Account
    role: Role


@pytest.fixture
def seeded(services: Services) -> Seeded:
    account = services.account.create(Register("a", "a@b.com", "pass1", "pass1"))
    role = services.role.create(CreateRole(scope="admin", cid="c1", sec="s1"), actor_id=account.id)
    services.account_role.create(CreateAccountRole(account_id=account.id, role_id=role.id), actor_id=account.id)
    return Seeded(services, account, role)


def _login(email: str = "a@b.com", password: str = "pass1", cid: str = "c1", secret: str = "s1") -> Login:
    return Login(email=email, password=password, client_id=cid, client_secret=secret)


class TestIssuance:
    def test_returns_bearer_token_for_role_scope(self, seeded: Seeded) -> None:
        before = datetime.now(timezone.utc)
        auth = seeded.services.account.oauth2(_login())

        assert auth.scope == "admin"
        assert auth.token_type == "Bearer"
        timeout = seeded.services.account.token_timeout_seconds
        assert before + timedelta(seconds=timeout - 5) <= auth.exp <= before + timedelta(seconds=timeout + 5)

        claims = decode_access_token(auth.access_token)
        assert claims is not None
        assert claims["id"] == seeded.account.id
        assert claims["username"] == "a@b.com"
        assert claims["scope"] == "admin"
        assert claims["exp"] == int(auth.exp.timestamp())


class TestValidation:
    @pytest.mark.parametrize(
        ("email", "password", "code"),
        [
            ("", "pass1", 40009),
            ("not-an-email", "pass1", 40010),
            ("a@b", "pass1", 40010),
            ("a@b.com", "", 40011),
            ("a@b.com", "abcd", 40012),
            ("a@b.com", "abcdefghi", 40013),
            # Email is checked before password.
            ("", "", 40009),
        ],
    )
    def test_sub_codes(self, seeded: Seeded, email: str, password: str, code: int) -> None:
        with pytest.raises(BadRequest) as exc_info:
            seeded.services.account.oauth2(_login(email=email, password=password))
        assert exc_info.value.code == code
        assert exc_info.value.status_code == 400

    def test_length_bounds_are_inclusive(self, services: Services) -> None:
        for password in ("abcde", "abcdefgh"):
            services.account.create(Register("n", f"{len(password)}@b.com", password, password))


class TestRejections:
    @staticmethod
    def _reject(seeded: Seeded, login: Login) -> NotAuthorized:
        with pytest.raises(NotAuthorized) as exc_info:
            seeded.services.account.oauth2(login)
        return exc_info.value

    def test_unknown_client_and_wrong_secret_are_indistinguishable(self, seeded: Seeded) -> None:
        unknown = self._reject(seeded, _login(cid="nope"))
        wrong = self._reject(seeded, _login(secret="wrong"))
        assert (unknown.code, unknown.error.message, unknown.cause) == (wrong.code, wrong.error.message, wrong.cause)
        assert unknown.code == 401000

    def test_unknown_email(self, seeded: Seeded) -> None:
        assert self._reject(seeded, _login(email="x@b.com")).code == 401000

    def test_membership_fails_before_password(self, seeded: Seeded) -> None:
        seeded.services.account.create(Register("b", "b@b.com", "pass2", "pass2"))
        # Wrong password too: the missing link must be reported first.
        rejected = self._reject(seeded, _login(email="b@b.com", password="wrong1"))
        assert rejected.code == 401000

    def test_deleted_link_is_rejected(self, seeded: Seeded) -> None:
        link, _ = seeded.services.account_role.get_by_param("", _link_filter(seeded))
        seeded.services.account_role.delete_by_id(link[0].id, actor_id=seeded.account.id)
        assert self._reject(seeded, _login()).code == 401000

    def test_wrong_password(self, seeded: Seeded) -> None:
        with pytest.raises(PasswordMismatch) as exc_info:
            seeded.services.account.oauth2(_login(password="wrong1"))
        assert exc_info.value.code == 40015
        assert exc_info.value.status_code == 401


class TestFreshness:
    def test_stale_cached_role_does_not_decide(self, seeded: Seeded) -> None:
        services = seeded.services
        services.role.repo.get_single_by_param("", RoleFilter(cid="c1"))  # warm the client-id key
        # Rotate the secret behind the cache's back.
        services.role.repo.update(replace(seeded.role, sec=get_cipher().encrypt("s2")))

        assert services.account.oauth2(_login(secret="s2")).scope == "admin"
        with pytest.raises(NotAuthorized):
            services.account.oauth2(_login(secret="s1"))


class TestStoreFailure:
    def test_store_error_propagates(self, seeded: Seeded) -> None:
        service = seeded.services.account
        broken = MagicMock()
        broken.get_single_by_param.side_effect = StoreError("connection reset")
        service.role_repo = broken
        with pytest.raises(StoreError) as exc_info:
            service.oauth2(_login())
        assert exc_info.value.code == 40007


def _link_filter(seeded: Seeded) -> AccountRoleListFilter:
    return AccountRoleListFilter(account_id=seeded.account.id, role_id=seeded.role.id)
