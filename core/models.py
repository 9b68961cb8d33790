"""
core/models.py -- Domain dataclasses for the account service.

Pattern: Data class (pure data container, zero logic). Stores, repositories
and services do the work; these classes only own the shape.

Three families live here:
  Entities      -- Account, Role, AccountRole (one row each, audit block shared)
  Filters       -- what a caller may look an entity up by. Single-row filters
                   match exactly; list filters add paging and ordering and
                   match string fields by prefix.
  Use-case I/O  -- Login, Register, the update payloads, Auth, Pagination.

Timestamps are ISO 8601 strings in UTC, the same representation the store
writes, so entities round-trip through the JSON cache without conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

MUST_REVALIDATE = "must-revalidate"
TOKEN_TYPE_BEARER = "Bearer"

# Fields on a list filter that control paging rather than matching rows.
PAGING_FIELDS = frozenset({"order_by", "limit", "page"})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Record:
    """Audit block carried by every persisted entity.

    deleted_at None means the row is live. A soft-deleted row keeps its id and
    stays readable by id; it is excluded from every other lookup.
    """

    id: int | None = None
    created_by: int = 0
    created_at: str | None = None
    updated_by: int = 0
    updated_at: str | None = None
    deleted_by: int | None = None
    deleted_at: str | None = None


@dataclass
class Account(Record):
    name: str = ""
    email: str = ""
    password: str = ""  # bcrypt hash, never plaintext


@dataclass
class Role(Record):
    """A client application and the scope its tokens carry.

    sec is the client secret encrypted with AES_SECRET. It is never stored or
    returned in plaintext.
    """

    scope: str = ""
    cid: str = ""
    sec: str = ""


@dataclass
class AccountRole(Record):
    account_id: int = 0
    role_id: int = 0


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass
class AccountFilter:
    id: int | None = None
    email: str | None = None
    name: str | None = None


@dataclass
class AccountListFilter(AccountFilter):
    order_by: str | None = None
    limit: int = 0
    page: int = 0


@dataclass
class RoleFilter:
    id: int | None = None
    scope: str | None = None
    cid: str | None = None


@dataclass
class RoleListFilter(RoleFilter):
    order_by: str | None = None
    limit: int = 0
    page: int = 0


@dataclass
class AccountRoleFilter:
    id: int | None = None
    account_id: int | None = None
    role_id: int | None = None


@dataclass
class AccountRoleListFilter(AccountRoleFilter):
    order_by: str | None = None
    limit: int = 0
    page: int = 0


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------


@dataclass
class Pagination:
    """Derived per query, never persisted."""

    current_page: int = 1
    current_elements: int = 0
    total_pages: int = 1
    total_elements: int = 0
    sort_by: str = ""


@dataclass
class Auth:
    """Returned once at issuance. Never persisted server-side."""

    access_token: str
    token_type: str
    exp: datetime
    scope: str


# ---------------------------------------------------------------------------
# Use-case input
# ---------------------------------------------------------------------------


@dataclass
class Login:
    email: str
    password: str
    client_id: str = ""
    client_secret: str = ""


@dataclass
class Register:
    name: str
    email: str
    password: str
    confirm_password: str


@dataclass
class UpdateAccountData:
    name: str


@dataclass
class UpdatePasswordData:
    password: str
    confirm_password: str


@dataclass
class CreateRole:
    scope: str
    cid: str
    sec: str


@dataclass
class UpdateRole:
    """Partial update. None leaves the field unchanged."""

    scope: str | None = None
    cid: str | None = None
    sec: str | None = None


@dataclass
class CreateAccountRole:
    account_id: int
    role_id: int
