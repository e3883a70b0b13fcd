"""
api/limiter.py -- Rate-limit dependency for API routes.

The RateLimiter instance itself lives on app.state.rate_limiter (built in
the lifespan from Settings). Using a single shared instance ensures every
route shares the same counter store. If each router built its own limiter,
each would get an isolated counter and limits would never trigger.

enforce_rate_limit is a plain `def` so FastAPI runs it in the threadpool;
with a networked storage URI every call is a round trip to Redis or Memcached.
"""

from fastapi import Request
from slowapi.util import get_remote_address

from auth.ratelimit import RateLimiter


def enforce_rate_limit(request: Request) -> None:
    """Count this request against the active profile, keyed by client address.

    Raises auth.errors.RateLimitExceeded, rendered as 429 by api/main.py.
    """
    limiter: RateLimiter = request.app.state.rate_limiter
    limiter.enforce(get_remote_address(request), request.method, request.url.path)
