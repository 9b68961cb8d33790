"""
API request and response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Every response, success or failure, is an Envelope:

  transaction_info  -- request echo (uri, method, X-Request-ID, timestamp)
                       plus error_code / cause on failure
  status_code       -- same value as the HTTP status
  message           -- Indonesian message (failures only)
  translation.en    -- English message (failures only)
  data / pagination -- payload (successes only)

Secrets never leave the service: AccountResponse has no password field and
RoleResponse has no sec field.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from core.models import Account, AccountRole, Pagination, Record, Role

# ---------------------------------------------------------------------------
# Request models
#
# Fields default to empty values so a missing field reaches the use-case
# validation and gets its specific error code instead of a generic 40000.
# ---------------------------------------------------------------------------


class LoginBody(BaseModel):
    """JSON alternative to the form fields of POST /api/v1/oauth2.

    Only username is trimmed. Passwords reach validation and bcrypt exactly
    as sent, whichever body format carried them.
    """

    username: str = ""
    password: str = ""

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/register and POST /api/v1/account."""

    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    @field_validator("name", "email")
    @classmethod
    def strip_identity(cls, v: str) -> str:
        return v.strip()


class AccountUpdate(BaseModel):
    name: str = ""


class PasswordUpdate(BaseModel):
    password: str = ""
    confirm_password: str = ""


class RoleCreate(BaseModel):
    scope: str = ""
    cid: str = ""
    sec: str = ""


class RolePatch(BaseModel):
    """Partial update. Omitted fields keep their stored value."""

    scope: Optional[str] = None
    cid: Optional[str] = None
    sec: Optional[str] = None


class AccountRoleCreate(BaseModel):
    account_id: int = 0
    role_id: int = 0


# ---------------------------------------------------------------------------
# Entity response models
# ---------------------------------------------------------------------------


class AuditFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    created_by: int
    created_at: Optional[str]
    updated_by: int
    updated_at: Optional[str]
    deleted_by: Optional[int] = None
    deleted_at: Optional[str] = None


class AccountResponse(AuditFields):
    name: str
    email: str

    @classmethod
    def from_entity(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            created_by=account.created_by,
            created_at=account.created_at,
            updated_by=account.updated_by,
            updated_at=account.updated_at,
            deleted_by=account.deleted_by,
            deleted_at=account.deleted_at,
        )


class RoleResponse(AuditFields):
    scope: str
    cid: str

    @classmethod
    def from_entity(cls, role: Role) -> "RoleResponse":
        return cls(
            id=role.id,
            scope=role.scope,
            cid=role.cid,
            created_by=role.created_by,
            created_at=role.created_at,
            updated_by=role.updated_by,
            updated_at=role.updated_at,
            deleted_by=role.deleted_by,
            deleted_at=role.deleted_at,
        )


class AccountRoleResponse(AuditFields):
    account_id: int
    role_id: int

    @classmethod
    def from_entity(cls, link: AccountRole) -> "AccountRoleResponse":
        return cls(
            id=link.id,
            account_id=link.account_id,
            role_id=link.role_id,
            created_by=link.created_by,
            created_at=link.created_at,
            updated_by=link.updated_by,
            updated_at=link.updated_at,
            deleted_by=link.deleted_by,
            deleted_at=link.deleted_at,
        )


_RESPONSE_FOR = {
    Account: AccountResponse,
    Role: RoleResponse,
    AccountRole: AccountRoleResponse,
}


def to_response(record: Record) -> AuditFields:
    """Map any domain entity to its public response model."""
    return _RESPONSE_FOR[type(record)].from_entity(record)


class PaginationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_page: int
    current_elements: int
    total_pages: int
    total_elements: int
    sort_by: str

    @classmethod
    def from_pagination(cls, p: Pagination) -> "PaginationResponse":
        return cls(
            current_page=p.current_page,
            current_elements=p.current_elements,
            total_pages=p.total_pages,
            total_elements=p.total_elements,
            sort_by=p.sort_by,
        )


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class TransactionInfo(BaseModel):
    request_uri: str
    request_method: str
    request_id: str = ""
    timestamp: str
    error_code: Optional[int] = None
    cause: Optional[str] = None


class Translation(BaseModel):
    en: str


class Envelope(BaseModel):
    """Top-level body of every response. Also the body of DELETE successes."""

    transaction_info: TransactionInfo
    status_code: int
    message: Optional[str] = None
    translation: Optional[Translation] = None
    data: Any = None
    pagination: Optional[PaginationResponse] = None


class AccountEnvelope(Envelope):
    data: Optional[AccountResponse] = None


class AccountsEnvelope(Envelope):
    data: list[AccountResponse] = []


class RoleEnvelope(Envelope):
    data: Optional[RoleResponse] = None


class RolesEnvelope(Envelope):
    data: list[RoleResponse] = []


class AccountRoleEnvelope(Envelope):
    data: Optional[AccountRoleResponse] = None


class AccountRolesEnvelope(Envelope):
    data: list[AccountRoleResponse] = []


class LoginEnvelope(Envelope):
    """POST /oauth2 success: the token fields sit beside transaction_info,
    where OAuth2 clients expect access_token, not under data."""

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    exp: Optional[datetime] = None
    scope: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
