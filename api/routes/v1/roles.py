"""
api/routes/v1/roles.py -- Role (client application) REST endpoints.

Routes (all admin only):
  POST   /api/v1/role        -- register a client: scope, cid, plaintext sec
  GET    /api/v1/role        -- list / filter roles (scope, cid match by prefix)
  GET    /api/v1/role/{id}   -- one role
  PUT    /api/v1/role/{id}   -- partial update; a new sec is re-encrypted
  DELETE /api/v1/role/{id}   -- soft delete, hard=true removes the row

The client secret is accepted in plaintext on create/update and never
returned.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from api.models import Envelope, RoleCreate, RoleEnvelope, RolePatch, RolesEnvelope
from api.responses import envelope_response
from auth.dependencies import require_admin
from auth.models import Principal
from core.models import CreateRole, RoleListFilter, UpdateRole
from services.roles import RoleService

router = APIRouter()


def _roles(request: Request) -> RoleService:
    return request.app.state.services.role


@router.post("/role", response_model=RoleEnvelope, status_code=201)
def create_role(
    request: Request,
    body: RoleCreate,
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    role = _roles(request).create(CreateRole(**body.model_dump()), actor_id=principal.id)
    return envelope_response(request, status_code=201, data=role)


@router.get("/role", response_model=RolesEnvelope)
def list_roles(
    request: Request,
    id: Optional[int] = None,
    scope: Optional[str] = None,
    cid: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: int = 0,
    page: int = 0,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    param = RoleListFilter(id=id, scope=scope, cid=cid, order_by=order_by, limit=limit, page=page)
    roles, pagination = _roles(request).get_by_param(cache_control, param)
    return envelope_response(request, data=roles, pagination=pagination)


@router.get("/role/{role_id}", response_model=RoleEnvelope)
def get_role(
    request: Request,
    role_id: int,
    cache_control: Optional[str] = Header(None),
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    return envelope_response(request, data=_roles(request).get_by_id(cache_control, role_id))


@router.put("/role/{role_id}", response_model=RoleEnvelope)
def update_role(
    request: Request,
    role_id: int,
    body: RolePatch,
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    role = _roles(request).update_by_id(role_id, UpdateRole(**body.model_dump()), actor_id=principal.id)
    return envelope_response(request, data=role)


@router.delete("/role/{role_id}", response_model=Envelope)
def delete_role(
    request: Request,
    role_id: int,
    hard: bool = False,
    principal: Principal = Depends(require_admin),
) -> JSONResponse:
    _roles(request).delete_by_id(role_id, principal.id, hard=hard)
    return envelope_response(request)
