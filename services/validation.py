"""
services/validation.py -- Input checks for the use-case layer.

Each check raises BadRequest with the specific sub-reason code so clients can
branch on error_code without parsing messages. Checks run in a fixed order
and stop at the first failure.

Password length is counted in characters, 5 to 8 inclusive. The upper bound
keeps the plaintext well inside bcrypt's 72-byte input limit.
"""

from __future__ import annotations

import re

from core.errors import (
    CODE_INVALID_CLIENT_ID_CLIENT_SECRET,
    CODE_INVALID_EMAIL_FORMAT,
    CODE_INVALID_EMPTY_EMAIL,
    CODE_INVALID_EMPTY_NAME,
    CODE_INVALID_EMPTY_PASSWORD,
    CODE_INVALID_MAXIMUM_PASSWORD,
    CODE_INVALID_MINIMUM_PASSWORD,
    CODE_INVALID_PASSWORD_CONFIRMATION,
    CODE_INVALID_SCOPE,
    BadRequest,
)
from core.models import CreateAccountRole, CreateRole, Login, Register, UpdateAccountData, UpdatePasswordData

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._+\-]+@[a-zA-Z0-9]+[a-zA-Z0-9.\-]*\.[a-zA-Z]{2,10}$")
MIN_PASSWORD_LENGTH = 5
MAX_PASSWORD_LENGTH = 8


def validate_email(email: str) -> None:
    if not email:
        raise BadRequest("invalid empty email", code=CODE_INVALID_EMPTY_EMAIL)
    if not EMAIL_PATTERN.match(email):
        raise BadRequest("invalid email format", code=CODE_INVALID_EMAIL_FORMAT)


def validate_password(password: str) -> None:
    if not password:
        raise BadRequest("invalid empty password", code=CODE_INVALID_EMPTY_PASSWORD)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest("invalid minimum password", code=CODE_INVALID_MINIMUM_PASSWORD)
    if len(password) > MAX_PASSWORD_LENGTH:
        raise BadRequest("invalid maximum password", code=CODE_INVALID_MAXIMUM_PASSWORD)


def validate_password_confirmation(password: str, confirm_password: str) -> None:
    validate_password(password)
    if password != confirm_password:
        raise BadRequest("invalid password confirmation", code=CODE_INVALID_PASSWORD_CONFIRMATION)


def validate_name(name: str) -> None:
    if not name or not name.strip():
        raise BadRequest("invalid empty name", code=CODE_INVALID_EMPTY_NAME)


def validate_login(v: Login) -> None:
    """email non-empty -> email shape -> password non-empty -> length bounds."""
    validate_email(v.email)
    validate_password(v.password)


def validate_register(v: Register) -> None:
    validate_name(v.name)
    validate_email(v.email)
    validate_password_confirmation(v.password, v.confirm_password)


def validate_update_account(v: UpdateAccountData) -> None:
    validate_name(v.name)


def validate_update_password(v: UpdatePasswordData) -> None:
    validate_password_confirmation(v.password, v.confirm_password)


def validate_create_role(v: CreateRole) -> None:
    if not v.scope:
        raise BadRequest("invalid scope", code=CODE_INVALID_SCOPE)
    if not v.cid or not v.sec:
        raise BadRequest("invalid client id/client secret", code=CODE_INVALID_CLIENT_ID_CLIENT_SECRET)


def validate_create_account_role(v: CreateAccountRole) -> None:
    if v.account_id <= 0:
        raise BadRequest("invalid account id")
    if v.role_id <= 0:
        raise BadRequest("invalid role id")
