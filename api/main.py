"""
api/main.py -- FastAPI application entry point for Tokengate.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers for allowed browser origins
  2. log_requests     -- method, path, status, latency, client address

Route dependencies, in the order a request meets them:
  /api/create, /api/authenticate   enforce_rate_limit
  every other /api/* route         enforce_rate_limit -> require_token

Lifespan builds the services from Settings once at startup (user store,
hasher, token service, pipeline, rate limiter) and places them on app.state.
Routes and dependencies only read app.state, so tests can swap every
service by patching the lifespan.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.limiter import enforce_rate_limit
from api.models import HealthResponse, MessageResponse, PolicyErrorResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.dependencies import require_token
from auth.errors import (
    AuthenticationFailed,
    InternalError,
    PolicyError,
    RateLimitExceeded,
    Unauthenticated,
    ValidationError,
)
from auth.passwords import PasswordHasher
from auth.pipeline import AuthPipeline
from auth.ratelimit import build_rate_limiter
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

VERSION = "0.1.0"
REDACTED = "Internal error details are not available."

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build services from Settings on startup; release them on shutdown.

    The secret key is read here once and handed to TokenService. Nothing
    re-reads it for the lifetime of the process.
    """
    logger.info("Tokengate API starting up")
    app.state.user_store = UserStore(settings.database_url)
    hasher = PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    tokens = TokenService(settings.secret_key, ttl_seconds=settings.token_expire_seconds)
    app.state.pipeline = AuthPipeline(users=app.state.user_store, hasher=hasher, tokens=tokens)
    app.state.rate_limiter = build_rate_limiter(settings.rate_limit_profile, settings.rate_limit_storage_uri)
    app.state.expose_error_details = settings.expose_error_details
    logger.info(
        "Auth initialized (rate_limit_profile=%s, rate_limit_storage=%s)",
        settings.rate_limit_profile,
        settings.rate_limit_storage_uri.split(":", 1)[0],
    )

    yield

    app.state.user_store.close()
    logger.info("Tokengate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tokengate API",
    description="Username/password registration and login issuing signed bearer tokens.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "x-access-token"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
#
# Dependencies run in list order, so the rate limiter counts a protected
# request before its token is checked.
# ---------------------------------------------------------------------------

app.include_router(
    auth_router,
    prefix="/api",
    tags=["Auth"],
    dependencies=[Depends(enforce_rate_limit)],
)
app.include_router(
    users_router,
    prefix="/api",
    tags=["Protected"],
    dependencies=[Depends(enforce_rate_limit), Depends(require_token)],
)


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every AuthError subclass maps to exactly one status code here. Route code
# never builds error responses itself.
# ---------------------------------------------------------------------------


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=MessageResponse(message=message).model_dump())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _message(403, exc.message)


@app.exception_handler(PolicyError)
async def policy_error_handler(request: Request, exc: PolicyError) -> JSONResponse:
    """Return 406 with every violated password rule, in rule order."""
    return JSONResponse(
        status_code=406,
        content=PolicyErrorResponse(message=exc.message, policy=exc.violations).model_dump(),
    )


@app.exception_handler(AuthenticationFailed)
async def authentication_failed_handler(request: Request, exc: AuthenticationFailed) -> JSONResponse:
    resp = _message(403, exc.message)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated) -> JSONResponse:
    return _message(403, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when the active rate-limit policy rejects the caller.

    Retry-After tells clients how many seconds remain in the current window.
    """
    response = _message(429, exc.message)
    response.headers["Retry-After"] = str(exc.retry_after)
    return response


@app.exception_handler(InternalError)
async def internal_error_handler(request: Request, exc: InternalError) -> JSONResponse:
    """Return 500 with a public summary.

    The underlying error text is only echoed when EXPOSE_ERROR_DETAILS=true;
    otherwise the "exception" field carries a fixed placeholder. The full
    detail is always written to the log.

    The login failure body has no "success" field, matching what existing
    clients of /api/authenticate parse.
    """
    logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.detail)
    exposed = exc.detail if getattr(request.app.state, "expose_error_details", False) else REDACTED
    content: dict = {"message": exc.message, "exception": exposed}
    if request.url.path != "/api/authenticate":
        content = {"success": False, **content}
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the request body does not fit the route's request model."""
    return _message(422, "Request validation failed.")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _message(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Unprotected endpoints
#
# Defined outside /api so neither the token gate nor the rate limiter applies.
# Health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def index(request: Request) -> dict:
    return {"message": f"Hello! The API is at {str(request.base_url).rstrip('/')}/api"}


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    try:
        request.app.state.user_store.has_users()
        database = "ok"
    except Exception:
        logger.exception("Health check database probe failed")
        database = "error"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components={"app": "ok", "database": database})
