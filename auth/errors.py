"""
auth/errors.py -- Exception taxonomy for the authentication pipeline.

Two tiers:
  Component errors (HashingError, TokenError, StoreError) are raised by the
  hasher, token service and user repository. AuthPipeline catches them and
  re-raises one of the pipeline errors below, so callers only ever handle
  AuthError subclasses.

  Pipeline errors (AuthError subclasses) each map to exactly one HTTP
  response. The mapping lives in api/main.py -- this module knows nothing
  about status codes.

Messages on these exceptions are caller-visible. They never contain a
plaintext password, a password digest or a token.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.models import RateLimitPolicy

# ---------------------------------------------------------------------------
# Component errors
# ---------------------------------------------------------------------------


class HashingError(Exception):
    """The password hasher failed internally or was given a malformed digest."""


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    """The token signature is valid but its exp claim is in the past."""


class TokenInvalid(TokenError):
    """Bad signature, malformed structure, or missing/ill-typed claims."""


class StoreError(Exception):
    """The user repository could not complete a read or write."""


class UniqueViolation(StoreError):
    """A write was rejected because the username already exists."""


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base class for errors translated into an HTTP response."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Bad or missing input, including a duplicate username."""


class PolicyError(AuthError):
    """The password failed one or more strength rules."""

    def __init__(self, message: str, violations: tuple[str, ...] | list[str]) -> None:
        super().__init__(message)
        self.violations = list(violations)


class AuthenticationFailed(AuthError):
    """Unknown username or wrong password on login."""


class Unauthenticated(AuthError):
    """A protected request carried no token, or a token that failed verification."""


class RateLimitExceeded(AuthError):
    """The caller exhausted the active rate-limit policy for the current window."""

    def __init__(self, policy: RateLimitPolicy, retry_after: int) -> None:
        super().__init__("Rate limit exceeded")
        self.policy = policy
        self.retry_after = retry_after


class InternalError(AuthError):
    """Hasher, repository or other unexpected failure.

    message is the public summary ("Cannot Create Account"); detail is the
    underlying error text, which the HTTP layer only echoes when explicitly
    configured to.
    """

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail
