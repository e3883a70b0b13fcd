"""
API request and response models for Tokengate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

The response envelope ({success, message, ...}) is a fixed contract with
existing clients; field names must not change.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateUserRequest(BaseModel):
    """Request body for POST /api/create.

    username and password default to "" rather than being required so that
    a missing field reaches AuthPipeline.register() and gets the contract's
    403 "Missing required information" instead of a 422.
    """

    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=1024)
    email: Optional[str] = Field(default=None, max_length=255)


class AuthenticateRequest(BaseModel):
    """Request body for POST /api/authenticate."""

    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True


class MessageResponse(BaseModel):
    """Generic {success, message} envelope used by most error responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str


class TokenResponse(BaseModel):
    """Response for a successful POST /api/authenticate."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "Enjoy your token!"
    token: str


class PolicyErrorResponse(BaseModel):
    """406 response listing every password rule the candidate failed."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    policy: list[str]


class ClaimsResponse(BaseModel):
    """Decoded token claims for GET /api/check."""

    model_config = ConfigDict(frozen=True)

    sub: str
    iat: int
    exp: int


class WelcomeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
