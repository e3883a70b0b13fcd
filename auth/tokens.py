"""
auth/tokens.py -- Signed, expiring bearer tokens (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens are self-contained
       (header.payload.signature) and carry only sub, iat and exp. Nothing is
       stored server-side, so a token cannot be revoked before it expires.

  Signing key: injected at construction from Settings.secret_key, which is
       read once at startup and never mutated. The key is never logged.

  Verification order: the signature is checked first (jose.jwt.decode with
       verify_exp disabled), then expiry against the injectable clock. A
       forged token is therefore always TokenInvalid, never TokenExpired, so
       the expiry branch cannot be used as an oracle on forged input. Every
       other failure -- bad signature, wrong algorithm, truncated token,
       missing or ill-typed claims -- collapses to TokenInvalid.

  Clock: verify() compares exp with clock() rather than letting jose read
       the system time, so tests can move time forward without sleeping.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.models import TokenClaims

_ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_timestamp(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class TokenService:
    """Issue and verify bearer tokens.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key)
        token = tokens.issue("alice")
        claims = tokens.verify(token)   # TokenClaims(subject="alice", ...)
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def issue(self, subject: str) -> str:
        """Encode a token for subject with iat=now and exp=now+ttl.

        Timestamps are truncated to whole seconds because JWT NumericDate
        claims are serialized as integers.
        """
        issued_at = self._clock().replace(microsecond=0)
        claims = TokenClaims(subject=subject, issued_at=issued_at, expires_at=issued_at + self.ttl)
        return jwt.encode(claims.to_payload(), self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Return the claims of a valid, unexpired token.

        Raises TokenInvalid if the signature or structure is bad, TokenExpired
        if the signature is good but now > exp.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            raise TokenInvalid("Token signature or structure is invalid.") from None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenInvalid("Token is missing a subject.")
        if not _is_timestamp(payload.get("iat")) or not _is_timestamp(payload.get("exp")):
            raise TokenInvalid("Token is missing iat/exp claims.")
        try:
            claims = TokenClaims.from_payload(payload)
        except (OverflowError, OSError, ValueError):
            raise TokenInvalid("Token timestamps are out of range.") from None

        if self._clock() > claims.expires_at:
            raise TokenExpired("Token has expired.")
        return claims
