"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores, services
and routes do the work; these only own domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class UserRecord:
    """A registered local account.

    password_digest is the argon2 encoded string (algorithm, parameters, salt
    and hash in one value). The plaintext password is never stored.

    email is accepted on registration and stored as-is; it is not validated.
    id and created_at are assigned by the store on save().
    """

    username: str
    password_digest: str
    email: str | None = None
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a bearer token.

    Never persisted server-side. The only way a token stops working before
    the secret key changes is natural expiry.
    """

    subject: str  # username, copied verbatim at issuance
    issued_at: datetime
    expires_at: datetime

    def to_payload(self) -> dict:
        """Return the JWT claim set: sub, iat and exp as integer epoch seconds."""
        return {
            "sub": self.subject,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_payload(cls, payload: dict) -> TokenClaims:
        return cls(
            subject=payload["sub"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of PasswordPolicy.evaluate(). Transient, never stored."""

    accepted: bool
    violations: tuple[str, ...] = ()


@dataclass(frozen=True)
class RateLimitPolicy:
    """One throttling rule.

    path is either an exact request path ("/api/authenticate") or "*" for
    every path the rate-limit dependency is mounted on. methods is a set of
    upper-case HTTP methods, or None to match every method.
    """

    name: str
    total: int
    window_seconds: int
    path: str = "*"
    methods: frozenset[str] | None = None

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return self.path == "*" or self.path == path


@dataclass(frozen=True)
class RateLimitCounter:
    """Snapshot of a counter after an increment. Times are epoch seconds."""

    count: int
    window_start: float
    window_end: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of RateLimiter.check(): the admit/reject verdict plus counter state."""

    allowed: bool
    counter: RateLimitCounter
    retry_after: int = 0
    policy: RateLimitPolicy | None = field(default=None, compare=False)
