"""
api/responses.py -- Builders for the response envelope.

Route handlers and exception handlers both go through envelope_response(), so
the envelope shape lives in exactly one place. Optional keys whose value is
None are dropped from the top level and from transaction_info; entity
payloads are left intact so a live row still shows "deleted_at": null.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import Envelope, PaginationResponse, TransactionInfo, Translation, to_response
from core.errors import CacheRefreshError, ServiceError
from core.models import Pagination, Record


def transaction_info(request: Request, error: Optional[ServiceError] = None) -> TransactionInfo:
    uri = request.url.path
    if request.url.query:
        uri = f"{uri}?{request.url.query}"
    return TransactionInfo(
        request_uri=uri,
        request_method=request.method,
        request_id=request.headers.get("X-Request-ID", ""),
        timestamp=datetime.now(timezone.utc).isoformat(),
        error_code=error.code if error else None,
        cause=error.cause if error and error.cause else None,
    )


def envelope_response(
    request: Request,
    status_code: int = 200,
    data: Any = None,
    pagination: Optional[Pagination] = None,
    extra: Optional[dict] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Wrap a success payload. data may be an entity, a list of entities or None."""
    envelope = Envelope(
        transaction_info=transaction_info(request),
        status_code=status_code,
        data=_render(data),
        pagination=PaginationResponse.from_pagination(pagination) if pagination else None,
    )
    body = _compact(envelope.model_dump(mode="json"))
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def error_response(request: Request, exc: ServiceError, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    """Render a ServiceError. A CacheRefreshError also carries the value it fetched."""
    data, pagination = None, None
    if isinstance(exc, CacheRefreshError):
        data, pagination = _split_refresh_value(exc.value)
    envelope = Envelope(
        transaction_info=transaction_info(request, exc),
        status_code=exc.status_code,
        message=exc.error.message,
        translation=Translation(en=exc.error.translation),
        data=_render(data),
        pagination=PaginationResponse.from_pagination(pagination) if pagination else None,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_compact(envelope.model_dump(mode="json")),
        headers=headers,
    )


def _render(data: Any) -> Any:
    if isinstance(data, Record):
        return to_response(data)
    if isinstance(data, list):
        return [to_response(item) if isinstance(item, Record) else item for item in data]
    return data


def _split_refresh_value(value: Any) -> tuple[Any, Optional[Pagination]]:
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[1], Pagination):
        return value[0], value[1]
    return value, None


def _compact(body: dict) -> dict:
    body["transaction_info"] = {k: v for k, v in body["transaction_info"].items() if v is not None}
    return {k: v for k, v in body.items() if v is not None}
