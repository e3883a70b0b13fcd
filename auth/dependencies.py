"""
auth/dependencies.py -- FastAPI Depends() helper for the token gate.

Token sources are checked in priority order:
  1. Request body field "token" -- JSON object or form-encoded body.
  2. Query parameter "token".
  3. x-access-token header.

An empty value at one source falls through to the next. The first non-empty
value is verified by AuthPipeline.require_token(); on success the decoded
claims are stored on request.state.claims for downstream handlers.

require_token() is mounted as a router-level dependency on every protected
route (see api/main.py). It raises Unauthenticated, which the exception
handler in api/main.py turns into a 403.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import json

from fastapi import Request

from auth.models import TokenClaims
from auth.pipeline import AuthPipeline

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_body_fields(request: Request) -> object:
    """Return the request body as parsed JSON or as a dict of form fields.

    An empty body, or one with any other content type, reads as {}. Raises
    ValueError when a JSON body does not parse.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        return dict(await request.form())
    if content_type.startswith("application/json"):
        raw = await request.body()
        return json.loads(raw) if raw else {}
    return {}


async def _token_from_body(request: Request) -> str | None:
    try:
        body = await read_body_fields(request)
    except ValueError:
        # Malformed JSON carries no token; the route's own body
        # validation reports the error if it expects a body.
        return None
    value = body.get("token") if isinstance(body, dict) else None
    return value if isinstance(value, str) and value else None


async def extract_token(request: Request) -> str | None:
    """Return the first non-empty token from body, query string or header."""
    return (
        await _token_from_body(request)
        or request.query_params.get("token")
        or request.headers.get("x-access-token")
        or None
    )


async def require_token(request: Request) -> TokenClaims:
    """Require a valid token. Raises Unauthenticated otherwise.

    Use as a FastAPI dependency:
        router = APIRouter(dependencies=[Depends(require_token)])
    or per route:
        async def route(claims: TokenClaims = Depends(require_token)): ...
    """
    pipeline: AuthPipeline = request.app.state.pipeline
    claims = pipeline.require_token(await extract_token(request))
    request.state.claims = claims
    return claims
