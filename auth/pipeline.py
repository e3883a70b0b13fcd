"""
auth/pipeline.py -- Registration, login and token gate orchestration.

AuthPipeline is the only place where the policy, hasher, token service and
user repository meet. It is framework independent: routes call it with plain
strings and translate the AuthError it raises into a response.

Sequencing (no reordering, no internal retries):
  register:      lookup -> policy -> hash -> persist
  login:         lookup -> verify -> issue
  require_token: verify -> claims

Known trade-offs kept for compatibility with existing clients:
  Login distinguishes "User not found." from "Wrong password." in its error
  message. Timing does not distinguish them: an unknown username is verified
  against a dummy digest so both paths do the same argon2 work.

Blocking: hash/verify are CPU- and memory-heavy. Callers on an
event loop must run register() and login() in a worker thread (the routes
are plain `def` functions, which FastAPI runs in its threadpool).
"""

from __future__ import annotations

import logging

from auth.errors import (
    AuthenticationFailed,
    HashingError,
    InternalError,
    PolicyError,
    StoreError,
    TokenError,
    TokenExpired,
    Unauthenticated,
    UniqueViolation,
    ValidationError,
)
from auth.models import TokenClaims, UserRecord
from auth.passwords import PasswordHasher
from auth.policy import PasswordPolicy
from auth.store import UserRepository
from auth.tokens import TokenService

logger = logging.getLogger("tokengate.auth")

MISSING_INFORMATION = "Missing required information"
USERNAME_TAKEN = "Username already exists."
INVALID_PASSWORD = "Invalid Password"
CREATE_FAILED = "Cannot Create Account"
USER_NOT_FOUND = "Authentication failed. User not found."
WRONG_PASSWORD = "Authentication failed. Wrong password."
LOGIN_FAILED = "Unable to Login"
NO_TOKEN = "No token provided."
BAD_TOKEN = "Failed to authenticate token."


class AuthPipeline:
    """Register, Login and RequireToken over injected collaborators.

    Usage:
        pipeline = AuthPipeline(users=UserStore(url), hasher=PasswordHasher(), tokens=TokenService(key))
        pipeline.register("alice", "Passw0rd!", email="alice@example.com")
        token = pipeline.login("alice", "Passw0rd!")
        claims = pipeline.require_token(token)
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        policy: PasswordPolicy | None = None,
    ) -> None:
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.policy = policy or PasswordPolicy()

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, username: str, password: str, email: str | None = None) -> UserRecord:
        """Create a local account. Does not log the user in.

        Raises ValidationError, PolicyError or InternalError. The store is
        only written once every check has passed.
        """
        if not username or not password:
            raise ValidationError(MISSING_INFORMATION)

        try:
            existing = self.users.find_by_username(username)
        except StoreError as exc:
            logger.error("Registration lookup failed for '%s': %s", username, exc)
            raise InternalError(CREATE_FAILED, str(exc)) from exc
        if existing is not None:
            raise ValidationError(USERNAME_TAKEN)

        result = self.policy.evaluate(password)
        if not result.accepted:
            raise PolicyError(INVALID_PASSWORD, result.violations)

        try:
            digest = self.hasher.hash(password)
        except HashingError as exc:
            raise InternalError(CREATE_FAILED, str(exc)) from exc

        try:
            user = self.users.save(UserRecord(username=username, password_digest=digest, email=email))
        except UniqueViolation as exc:
            # Lost a race with a concurrent registration of the same name.
            raise ValidationError(USERNAME_TAKEN) from exc
        except StoreError as exc:
            logger.error("Registration save failed for '%s': %s", username, exc)
            raise InternalError(CREATE_FAILED, str(exc)) from exc

        logger.info("Registered user '%s'", username)
        return user

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> str:
        """Verify credentials and return a freshly issued token.

        Raises AuthenticationFailed or InternalError.
        """
        try:
            user = self.users.find_by_username(username)
            if user is None:
                # Equalize timing -- do NOT return before running argon2.
                self.hasher.verify(self.hasher.dummy_digest, password)
                logger.info("Login failed for '%s': unknown user", username)
                raise AuthenticationFailed(USER_NOT_FOUND)
            matched = self.hasher.verify(user.password_digest, password)
        except (HashingError, StoreError) as exc:
            logger.error("Login for '%s' failed internally: %s", username, exc)
            raise InternalError(LOGIN_FAILED, str(exc)) from exc

        if not matched:
            logger.info("Login failed for '%s': wrong password", username)
            raise AuthenticationFailed(WRONG_PASSWORD)

        logger.info("Issued token for '%s'", username)
        return self.tokens.issue(user.username)

    # ------------------------------------------------------------------
    # RequireToken
    # ------------------------------------------------------------------

    def require_token(self, token: str | None) -> TokenClaims:
        """Return the claims of token or raise Unauthenticated.

        Expired and invalid tokens produce the same caller-visible message;
        only the log line tells them apart.
        """
        if not token:
            raise Unauthenticated(NO_TOKEN)
        try:
            return self.tokens.verify(token)
        except TokenError as exc:
            reason = "expired" if isinstance(exc, TokenExpired) else "invalid"
            logger.info("Rejected %s token", reason)
            raise Unauthenticated(BAD_TOKEN) from exc

    def list_usernames(self) -> list[str]:
        try:
            return self.users.list_usernames()
        except StoreError as exc:
            raise InternalError("Unable to list users", str(exc)) from exc
