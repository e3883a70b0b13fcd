"""
api/routes/auth.py -- Public registration and login endpoints.

Routes (mounted under /api by api/main.py):
  POST /api/create        -- register a local account; no token is issued
  POST /api/authenticate  -- verify credentials; returns a bearer token

Both routes sit behind enforce_rate_limit (router-level dependency added in
api/main.py) and are public -- the token gate does not apply to them.

Both handlers are plain `def` functions. argon2 hashing and verification
block for tens of milliseconds; FastAPI runs sync handlers in its
threadpool so the event loop keeps serving other requests meanwhile.

Bodies may be JSON or form-encoded (urlencoded or multipart). Both are read
into the same request model; a body that does not fit it is a 422.

Errors are raised by AuthPipeline as auth.errors.AuthError subclasses and
rendered by the exception handlers in api/main.py:
  ValidationError       -> 403
  PolicyError           -> 406 (with the violated rules under "policy")
  AuthenticationFailed  -> 403
  InternalError         -> 500
"""

from __future__ import annotations

from typing import TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as BodyValidationError

from api.models import AuthenticateRequest, CreateUserRequest, SuccessResponse, TokenResponse
from auth.dependencies import read_body_fields
from auth.pipeline import AuthPipeline

router = APIRouter()

BodyT = TypeVar("BodyT", bound=BaseModel)


async def _parse_body(request: Request, model: type[BodyT]) -> BodyT:
    """Validate a JSON or form-encoded body against model; 422 on failure."""
    try:
        fields = await read_body_fields(request)
    except ValueError:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": None}]
        ) from None
    try:
        return model.model_validate(fields)
    except BodyValidationError as exc:
        raise RequestValidationError(exc.errors()) from None


async def create_user_body(request: Request) -> CreateUserRequest:
    return await _parse_body(request, CreateUserRequest)


async def authenticate_body(request: Request) -> AuthenticateRequest:
    return await _parse_body(request, AuthenticateRequest)


@router.post("/create", response_model=SuccessResponse)
def create(request: Request, body: CreateUserRequest = Depends(create_user_body)) -> SuccessResponse:
    """Register a new user. Registration does not log the user in."""
    pipeline: AuthPipeline = request.app.state.pipeline
    pipeline.register(body.username, body.password, email=body.email)
    return SuccessResponse()


@router.post("/authenticate", response_model=TokenResponse)
def authenticate(request: Request, body: AuthenticateRequest = Depends(authenticate_body)) -> JSONResponse:
    """Exchange username and password for a token valid for 24 hours."""
    pipeline: AuthPipeline = request.app.state.pipeline
    token = pipeline.login(body.username, body.password)
    resp = JSONResponse(status_code=200, content=TokenResponse(token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp
