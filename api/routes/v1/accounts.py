"""
api/routes/v1/accounts.py -- Token issuance, registration and account REST endpoints.

Routes:
  POST   /api/v1/oauth2             -- exchange client credentials + password for a token
  POST   /api/v1/register           -- public self-registration
  GET    /api/v1/me                 -- current account (requires auth)
  PUT    /api/v1/me                 -- rename current account (requires auth)
  PUT    /api/v1/me/password        -- change current account password (requires auth)
  POST   /api/v1/account            -- create an account on someone's behalf (requires auth)
  GET    /api/v1/account            -- list / filter accounts (admin only)
  GET    /api/v1/account/{id}       -- one account (requires auth)
  PUT    /api/v1/account/{id}       -- rename (admin: any id; others: own id)
  DELETE /api/v1/account/{id}       -- soft delete (admin: any id, hard=true allowed;
                                       others: own id, soft only)

Security:
  POST /oauth2 is rate-limited per IP (OAUTH2_RATE_LIMIT).
  Cache-Control: no-store on token responses.
  Owner pinning: for non-admin callers PUT/DELETE /account/{id} ignore the
  path id and act on the caller's own account rather than answering 403.

Handlers are sync (def) except oauth2, which reads the raw body. FastAPI runs
sync handlers in its thread pool, so blocking store and cache calls do not
stall the event loop.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.limiter import OAUTH2_RATE_LIMIT, limiter
from api.models import (
    AccountEnvelope,
    AccountsEnvelope,
    AccountUpdate,
    Envelope,
    LoginBody,
    LoginEnvelope,
    PasswordUpdate,
    RegisterRequest,
)
from api.responses import envelope_response
from auth.dependencies import get_current_principal, is_admin, require_admin
from auth.models import Principal
from core.errors import BadRequest, Forbidden
from core.models import AccountListFilter, Login, Register, UpdateAccountData, UpdatePasswordData
from services.accounts import AccountService

logger = logging.getLogger("accountsvc.api.accounts")

router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.services.account


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


def client_credentials(request: Request) -> tuple[str, str]:
    """Read (client_id, client_secret) from the request headers.

    Authorization: Basic base64(cid:secret) wins when present; otherwise the
    client_id and client_secret headers are used. A malformed Basic header
    yields empty credentials, which the verification flow rejects.
    """
    authorization = request.headers.get("Authorization", "")
    if authorization:
        scheme, _, encoded = authorization.partition(" ")
        if scheme.lower() != "basic" or not encoded:
            return "", ""
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning("Malformed Basic authorization header")
            return "", ""
        cid, sep, secret = decoded.partition(":")
        if not sep:
            return "", ""
        return cid, secret
    return request.headers.get("client_id", ""), request.headers.get("client_secret", "")


async def _login_fields(request: Request) -> tuple[str, str]:
    """username/password from form fields, or from a JSON body."""
    # body() first: Starlette caches it, so form() can still parse it afterwards.
    raw = await request.body()
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return str(form.get("username", "")).strip(), str(form.get("password", ""))
    if not raw:
        return "", ""
    try:
        body = LoginBody.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise BadRequest("error unmarshal body") from exc
    return body.username, body.password


@limiter.limit(OAUTH2_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/oauth2", response_model=LoginEnvelope)
async def oauth2(request: Request) -> JSONResponse:
    """Issue a bearer token for (client credentials, email, password).

    Every credential failure before the password check answers with the same
    401000, so callers cannot probe which part was wrong.
    """
    client_id, client_secret = client_credentials(request)
    username, password = await _login_fields(request)
    login = Login(email=username, password=password, client_id=client_id, client_secret=client_secret)
    auth = await run_in_threadpool(_accounts(request).oauth2, login)
    return envelope_response(
        request,
        extra={
            "access_token": auth.access_token,
            "token_type": auth.token_type,
            "exp": auth.exp.isoformat(),
            "scope": auth.scope,
        },
        headers={"Cache-Control": "no-store"},
    )


@router.post("/register", response_model=AccountEnvelope, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Self-registration. The new account has no role links and cannot log in
    until an admin links it to a role."""
    account = _accounts(request).create(Register(**body.model_dump()), actor_id=0)
    return envelope_response(request, status_code=201, data=account)


# ---------------------------------------------------------------------------
# Current account
# ---------------------------------------------------------------------------


@router.get("/me", response_model=AccountEnvelope)
def me(
    request: Request,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    account = _accounts(request).get_by_id(cache_control, principal.id)
    return envelope_response(request, data=account)


@router.put("/me", response_model=AccountEnvelope)
def update_me(
    request: Request,
    body: AccountUpdate,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    account = _accounts(request).update_by_id(principal.id, UpdateAccountData(name=body.name), principal.id)
    return envelope_response(request, data=account)


@router.put("/me/password", response_model=AccountEnvelope)
def update_my_password(
    request: Request,
    body: PasswordUpdate,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    data = UpdatePasswordData(password=body.password, confirm_password=body.confirm_password)
    account = _accounts(request).update_password_by_id(principal.id, data, principal.id)
    return envelope_response(request, data=account)


# ---------------------------------------------------------------------------
# Account management
# ---------------------------------------------------------------------------


@router.post("/account", response_model=AccountEnvelope, status_code=201)
def create_account(
    request: Request,
    body: RegisterRequest,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    account = _accounts(request).create(Register(**body.model_dump()), actor_id=principal.id)
    return envelope_response(request, status_code=201, data=account)


@router.get("/account", response_model=AccountsEnvelope)
def list_accounts(
    request: Request,
    id: Optional[int] = None,
    email: Optional[str] = None,
    name: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: int = 0,
    page: int = 0,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    """email and name match by prefix; results are paginated."""
    param = AccountListFilter(id=id, email=email, name=name, order_by=order_by, limit=limit, page=page)
    accounts, pagination = _accounts(request).get_by_param(cache_control, param)
    return envelope_response(request, data=accounts, pagination=pagination)


@router.get("/account/{account_id}", response_model=AccountEnvelope)
def get_account(
    request: Request,
    account_id: int,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    account = _accounts(request).get_by_id(cache_control, account_id)
    return envelope_response(request, data=account)


@router.put("/account/{account_id}", response_model=AccountEnvelope)
def update_account(
    request: Request,
    account_id: int,
    body: AccountUpdate,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    if not is_admin(principal):
        account_id = principal.id
    account = _accounts(request).update_by_id(account_id, UpdateAccountData(name=body.name), principal.id)
    return envelope_response(request, data=account)


@router.delete("/account/{account_id}", response_model=Envelope)
def delete_account(
    request: Request,
    account_id: int,
    hard: bool = False,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    if not is_admin(principal):
        if hard:
            raise Forbidden("hard delete requires the admin scope")
        account_id = principal.id
    _accounts(request).delete_by_id(account_id, principal.id, hard=hard)
    return envelope_response(request)
