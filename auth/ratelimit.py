"""
auth/ratelimit.py -- Fixed-window rate limiting for authentication endpoints.

Algorithm:
  For each (policy path, client key) there is one counter held in a `limits`
  storage backend (the library slowapi is built on). On every attempt the
  counter is incremented; the first increment creates the key with a TTL of
  the policy window, and the key lapsing is the reset. The attempt is
  rejected when count > policy.total. Rejected attempts still count, so an
  attacker cannot probe for free once the limit is reached.

  The client key is the caller's network address, never the username --
  usernames are unauthenticated at this point and trivially rotated.

Storage URIs:
  memory://              per-process counters (limits MemoryStorage); the
                         backend drops expired keys itself
  redis://, memcached:// counters shared across instances; INCR on the
                         backend is atomic and the window is the key's TTL

Profiles:
  Exactly one profile is active per deployment (Settings.rate_limit_profile).
  The two production profiles mirror each other's intent -- a strict limit
  on the login endpoint only, or a looser limit on every POST -- and are
  never combined.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Iterable

from limits.storage import storage_from_string

from auth.errors import RateLimitExceeded
from auth.models import RateLimitCounter, RateLimitDecision, RateLimitPolicy

logger = logging.getLogger("tokengate.ratelimit")

# ---------------------------------------------------------------------------
# Named policies and deployment profiles
# ---------------------------------------------------------------------------

FIVE_MINUTES = 5 * 60

AUTHENTICATE_POLICY = RateLimitPolicy(
    name="authenticate",
    total=5,
    window_seconds=FIVE_MINUTES,
    path="/api/authenticate",
)

API_POST_POLICY = RateLimitPolicy(
    name="api-post",
    total=15,
    window_seconds=FIVE_MINUTES,
    path="*",
    methods=frozenset({"POST"}),
)

PROFILES: dict[str, tuple[RateLimitPolicy, ...]] = {
    "authenticate": (AUTHENTICATE_POLICY,),
    "post": (API_POST_POLICY,),
    "off": (),
}


def policies_for_profile(profile: str) -> tuple[RateLimitPolicy, ...]:
    """Return the policies of a named profile. Raises ValueError if unknown."""
    try:
        return PROFILES[profile]
    except KeyError:
        raise ValueError(f"Unknown rate limit profile {profile!r}. Expected one of: {', '.join(PROFILES)}") from None


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class LimitsRateLimitStore:
    """Fixed-window counters held in a `limits` storage backend.

    The backend owns the window: incr() creates the key with a TTL of
    window_seconds on first use, and the key disappears when it lapses.
    Window bounds are derived from the key's expiry, so they follow the
    backend's clock.
    """

    def __init__(self, storage_uri: str = "memory://") -> None:
        self.storage_uri = storage_uri
        self._storage = storage_from_string(storage_uri)

    def hit(self, key: str, window_seconds: int) -> RateLimitCounter:
        count = self._storage.incr(key, window_seconds)
        window_end = self._storage.get_expiry(key)
        return RateLimitCounter(count, window_end - window_seconds, window_end)

    def reset(self) -> None:
        self._storage.reset()


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Admit/reject decisions over a LimitsRateLimitStore.

    Usage:
        limiter = RateLimiter(LimitsRateLimitStore("memory://"), policies=PROFILES["authenticate"])
        limiter.enforce(client_ip, "POST", "/api/authenticate")   # raises RateLimitExceeded
        limiter.allow(client_ip, AUTHENTICATE_POLICY)             # bool

    clock is only used for Retry-After and must agree with the storage
    backend's clock, which for every limits backend is wall time.
    """

    def __init__(
        self,
        store: LimitsRateLimitStore,
        policies: Iterable[RateLimitPolicy] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.policies = tuple(policies)
        self._clock = clock

    @staticmethod
    def counter_key(key: str, policy: RateLimitPolicy) -> str:
        return f"ratelimit:{policy.name}:{policy.path}:{key}"

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        counter = self.store.hit(self.counter_key(key, policy), policy.window_seconds)
        if counter.count > policy.total:
            retry_after = max(1, math.ceil(counter.window_end - self._clock()))
            return RateLimitDecision(False, counter, retry_after, policy)
        return RateLimitDecision(True, counter, 0, policy)

    def allow(self, key: str, policy: RateLimitPolicy) -> bool:
        return self.check(key, policy).allowed

    def enforce(self, key: str, method: str, path: str) -> None:
        """Count the attempt against every matching policy; raise on the first rejection."""
        for policy in self.policies:
            if not policy.matches(method, path):
                continue
            decision = self.check(key, policy)
            if not decision.allowed:
                logger.warning(
                    "Rate limit '%s' exceeded by %s on %s %s (%d/%d)",
                    policy.name,
                    key,
                    method,
                    path,
                    decision.counter.count,
                    policy.total,
                )
                raise RateLimitExceeded(policy, decision.retry_after)


def build_rate_limiter(profile: str, storage_uri: str) -> RateLimiter:
    return RateLimiter(LimitsRateLimitStore(storage_uri), policies_for_profile(profile))
