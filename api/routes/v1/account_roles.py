"""
api/routes/v1/account_roles.py -- Account-to-role link REST endpoints.

Routes (all admin only -- a link is what lets an account obtain a token with
the role's scope):
  POST   /api/v1/account-role        -- link account_id to role_id
  GET    /api/v1/account-role        -- list / filter links
  GET    /api/v1/account-role/{id}   -- one link
  DELETE /api/v1/account-role/{id}   -- soft delete, hard=true removes the row
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from api.models import AccountRoleCreate, AccountRoleEnvelope, AccountRolesEnvelope, Envelope
from api.responses import envelope_response
from auth.dependencies import require_admin
from auth.models import Principal
from core.models import AccountRoleListFilter, CreateAccountRole
from services.account_roles import AccountRoleService

router = APIRouter()


def _links(request: Request) -> AccountRoleService:
    return request.app.state.services.account_role


@router.post("/account-role", response_model=AccountRoleEnvelope, status_code=201)
def create_account_role(
    request: Request,
    body: AccountRoleCreate,
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    link = _links(request).create(CreateAccountRole(**body.model_dump()), actor_id=principal.id)
    return envelope_response(request, status_code=201, data=link)


@router.get("/account-role", response_model=AccountRolesEnvelope)
def list_account_roles(
    request: Request,
    id: Optional[int] = None,
    account_id: Optional[int] = None,
    role_id: Optional[int] = None,
    order_by: Optional[str] = None,
    limit: int = 0,
    page: int = 0,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    param = AccountRoleListFilter(
        id=id, account_id=account_id, role_id=role_id, order_by=order_by, limit=limit, page=page
    )
    links, pagination = _links(request).get_by_param(cache_control, param)
    return envelope_response(request, data=links, pagination=pagination)


@router.get("/account-role/{link_id}", response_model=AccountRoleEnvelope)
def get_account_role(
    request: Request,
    link_id: int,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    return envelope_response(request, data=_links(request).get_by_id(cache_control, link_id))


@router.delete("/account-role/{link_id}", response_model=Envelope)
def delete_account_role(
    request: Request,
    link_id: int,
    hard: bool = False,
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    _links(request).delete_by_id(link_id, principal.id, hard=hard)
    return envelope_response(request)
