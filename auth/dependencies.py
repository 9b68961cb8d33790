"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: Authorization: Bearer <token>, where the token
was issued by POST /api/v1/oauth2. The claims are trusted as-is after the
signature and expiry check; no database lookup happens per request.

get_current_principal() raises NotAuthorized (401000) if the header is
missing or the token does not verify.
require_admin() wraps it and raises Forbidden (403000) unless the token's
scope equals Settings.admin_scope.
is_admin() is the non-raising check routes use when admins and owners share
an endpoint (e.g. PUT /account/{id}).

Errors are raised as ServiceError subclasses so the api/main.py handler
renders them in the standard envelope.

Layer rule: may import from fastapi (Depends/Request) because this module is
part of the FastAPI dependency injection system. No imports from db/, cache/,
repository/, or services/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Principal
from auth.tokens import decode_access_token
from core.config import get_settings
from core.errors import Forbidden, NotAuthorized


def try_get_current_principal(request: Request) -> Principal | None:
    """Return the Principal for a valid Bearer token, None on any failure."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_access_token(auth_header[7:])
    if payload is None:
        return None
    try:
        account_id = int(payload["id"])
    except (TypeError, ValueError):
        return None
    return Principal(id=account_id, username=str(payload.get("username", "")), scope=str(payload["scope"]))


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/me")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise NotAuthorized("missing or invalid bearer token")
    return principal


def is_admin(principal: Principal) -> bool:
    return principal.scope == get_settings().admin_scope


def require_admin(request: Request) -> Principal:
    """Require the admin scope. 401000 if unauthenticated, 403000 otherwise."""
    principal = get_current_principal(request)
    if not is_admin(principal):
        raise Forbidden(f"scope {principal.scope!r} is not allowed")
    return principal
