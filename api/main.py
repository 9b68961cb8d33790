"""
api/main.py -- FastAPI application entry point for the account service.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (engine, cache, repositories, services, purge task)
and shutdown (cancel purge task, close cache, dispose engine) symmetrically.

Every response body, including every error, is the envelope built in
api/responses.py.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import Envelope, HealthResponse, Translation
from api.responses import error_response, transaction_info
from api.routes.v1.account_roles import router as account_roles_router
from api.routes.v1.accounts import router as accounts_router
from api.routes.v1.roles import router as roles_router
from auth.cipher import get_cipher
from cache.store import CacheBackend, SQLiteCache, create_cache
from core.config import Settings, get_settings
from core.errors import BadRequest, CacheError, ServiceError, StoreError
from db.tables import init_engine
from repository import build_repositories
from services import build_services

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("accountsvc.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(cache: SQLiteCache) -> None:
    """Purge expired SQLite cache entries every hour.

    Expired entries are already ignored on read; this only reclaims space
    for keys that are never read again. Redis expires keys on its own and
    gets no purge task.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = await asyncio.to_thread(cache.purge_expired)
        logger.debug("Purged %d expired cache entries", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def wire_state(app: FastAPI, engine: Engine, cache: CacheBackend, settings: Settings) -> None:
    """Build repositories and services over engine + cache and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph.
    """
    app.state.engine = engine
    app.state.cache = cache
    app.state.repositories = build_repositories(engine, cache, settings)
    app.state.services = build_services(app.state.repositories, get_cipher(), settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Engine first -- create_all must run before any request touches a table.
      2. Cache second -- repositories hold a reference to it.
      3. Repositories and services -- depend on both.
      4. Purge task last -- references the cache.
    """
    settings = get_settings()
    logger.info("Account service starting up")
    engine = init_engine(settings.database_url)
    logger.info("Database initialized")
    cache = create_cache(settings.cache_url)
    logger.info("Cache initialized (%s)", type(cache).__name__)
    wire_state(app, engine, cache, settings)
    purge_task = asyncio.create_task(_purge_loop(cache)) if isinstance(cache, SQLiteCache) else None

    yield

    if purge_task is not None:
        purge_task.cancel()
    cache.close()
    engine.dispose()
    logger.info("Account service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="Account Service API",
    description="Accounts, roles and account-role links; OAuth2-style token issuance.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Cache-Control",
        "X-Request-ID",
        "client_id",
        "client_secret",
    ],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
        request.headers.get("X-Request-ID", "-"),
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(accounts_router, prefix="/api/v1", tags=["Account"])
app.include_router(roles_router, prefix="/api/v1", tags=["Role"])
app.include_router(account_roles_router, prefix="/api/v1", tags=["Account Role"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope so API clients can parse errors
# uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a taxonomy error with its code, status and bilingual message.

    Server-side failures (store, cache) log with the traceback; client
    errors log one line.
    """
    if isinstance(exc, (StoreError, CacheError)):
        logger.error("%s %s -> %d: %s", request.method, request.url.path, exc.code, exc.cause, exc_info=exc)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.code, exc.cause)
    return error_response(request, exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 in the envelope when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    return _plain_error(
        request,
        429,
        "Terlalu banyak permintaan! Silakan coba kembali nanti!",
        "Too many requests! Please retry later!",
        cause=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed body, path or query parameters map to BadRequest (40000)."""
    return await service_error_handler(request, BadRequest(str(exc.errors())))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes (404), wrong methods (405) and other framework errors."""
    return _plain_error(request, exc.status_code, str(exc.detail), str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _plain_error(
        request,
        500,
        "Terdapat kesalahan pada server!",
        "An unexpected error occurred.",
    )


def _plain_error(
    request: Request,
    status_code: int,
    message: str,
    translation: str,
    cause: str | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Envelope for errors that have no taxonomy code (framework and limiter errors)."""
    info = transaction_info(request)
    info.cause = cause
    envelope = Envelope(
        transaction_info=info,
        status_code=status_code,
        message=message,
        translation=Translation(en=translation),
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit and no auth --
# load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus a reachability check of the database and the cache."""
    components = {"app": "ok", "database": "ok", "cache": "ok"}
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        components["database"] = "error"
    if not request.app.state.cache.ping():
        components["cache"] = "error"
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=VERSION, components=components)
