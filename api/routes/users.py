"""
api/routes/users.py -- Token-protected endpoints.

Routes (mounted under /api with the require_token dependency):
  GET /api/        -- welcome message
  GET /api/check   -- the decoded claims of the caller's token
  GET /api/users   -- every registered username (never digests)
  any other /api/* -- 404 for callers with a valid token
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ClaimsResponse, MessageResponse, WelcomeResponse
from auth.dependencies import require_token
from auth.models import TokenClaims
from auth.pipeline import AuthPipeline

router = APIRouter()


@router.get("/", response_model=WelcomeResponse)
async def welcome() -> WelcomeResponse:
    return WelcomeResponse(message="Welcome to the coolest API on earth!")


@router.get("/check", response_model=ClaimsResponse)
async def check(claims: TokenClaims = Depends(require_token)) -> ClaimsResponse:
    """Return the caller's claims exactly as they appear in the token payload.

    require_token is also a router-level dependency; FastAPI caches the
    result per request, so the token is only verified once.
    """
    return ClaimsResponse(**claims.to_payload())


@router.get("/users", response_model=list[str])
def list_users(request: Request) -> list[str]:
    """Return usernames only, so no password digest can leak into a response."""
    pipeline: AuthPipeline = request.app.state.pipeline
    return pipeline.list_usernames()


# Registered last so every real route matches first. Unknown /api/* paths
# still meet the router's token gate before answering 404.
@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def not_found(path: str) -> JSONResponse:
    return JSONResponse(status_code=404, content=MessageResponse(message="Not found.").model_dump())
