"""
tests/conftest.py -- Shared test fixtures for Tokengate tests.

This module provides:
  - FakeClock: a settable clock for token expiry
  - ticker: a settable clock for rate-limit windows, shared with the limits backend
  - make_user_store(): isolated in-memory SQLite user store
  - fast hasher / token service / pipeline fixtures for unit tests
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient over the real app with a seeded user and token
  - limited_client: TestClient with the "authenticate" rate-limit profile

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before api.main is imported so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from auth.passwords import PasswordHasher
from auth.pipeline import AuthPipeline
from auth.ratelimit import AUTHENTICATE_POLICY, LimitsRateLimitStore, RateLimiter
from auth.store import UserStore
from auth.tokens import TokenService

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
SEED_USERNAME = "testadmin"
SEED_PASSWORD = "Testpass1!"

_db_ids = itertools.count()


class FakeClock:
    """Callable clock returning a settable aware datetime (or epoch float via .epoch)."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_user_store(name: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A counter suffix keeps every call distinct so tests never see each
    other's users.
    """
    return UserStore(f"sqlite:///file:test_users_{name}_{next(_db_ids)}?mode=memory&cache=shared&uri=true")


def make_hasher() -> PasswordHasher:
    # Minimum argon2 cost -- correctness, not strength, is under test.
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return make_hasher()


@pytest.fixture
def token_service(clock: FakeClock) -> TokenService:
    return TokenService(TEST_SECRET, clock=clock)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = make_user_store("unit")
    yield store
    store.close()


@pytest.fixture
def pipeline(user_store: UserStore, hasher: PasswordHasher, token_service: TokenService) -> AuthPipeline:
    return AuthPipeline(users=user_store, hasher=hasher, tokens=token_service)


# ---------------------------------------------------------------------------
# Rate-limit clock
# ---------------------------------------------------------------------------


class Ticker:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ticker() -> Generator[Ticker, None, None]:
    """Drive the limits in-memory backend and the limiter from one clock.

    MemoryStorage stamps and expires keys with time.time(); patching the
    module's time reference moves windows forward without sleeping.
    """
    ticker = Ticker()
    with patch("limits.storage.memory.time") as backend_time:
        backend_time.time.side_effect = ticker
        yield ticker


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(pipeline: AuthPipeline, user_store: UserStore, rate_limiter: RateLimiter):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test services into app.state so TestClient routes see
    isolated stores and cheap hashing rather than production settings.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.pipeline = pipeline
        app.state.rate_limiter = rate_limiter
        app.state.expose_error_details = False
        yield

    return test_lifespan


def _build_test_app_state(name: str) -> tuple[AuthPipeline, UserStore]:
    """Return (pipeline, user_store) with the seeded user registered."""
    user_store = make_user_store(name)
    pipeline = AuthPipeline(users=user_store, hasher=make_hasher(), tokens=TokenService(TEST_SECRET))
    pipeline.register(SEED_USERNAME, SEED_PASSWORD)
    return pipeline, user_store


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, AuthPipeline], None, None]:
    """Yield (client, token, pipeline) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers and dependencies. The seeded user is
    testadmin / Testpass1! and token is a valid token for it. The rate
    limiter has no policies, so ordinary API tests never trip a limit.
    """
    from api.main import app

    pipeline, user_store = _build_test_app_state("api")
    token = pipeline.login(SEED_USERNAME, SEED_PASSWORD)
    limiter = RateLimiter(LimitsRateLimitStore("memory://"), policies=())

    app.router.lifespan_context = _patch_lifespan(pipeline, user_store, limiter)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, pipeline

    user_store.close()


@pytest.fixture
def limited_client(ticker: Ticker) -> Generator[TestClient, None, None]:
    """Yield a TestClient with the "authenticate" profile active.

    Windows follow the ticker fixture, so tests advance ticker.now instead
    of sleeping. The seeded user is the same as for api_client.
    """
    from api.main import app

    pipeline, user_store = _build_test_app_state("ratelimit")
    limiter = RateLimiter(LimitsRateLimitStore("memory://"), policies=(AUTHENTICATE_POLICY,), clock=ticker)
    app.router.lifespan_context = _patch_lifespan(pipeline, user_store, limiter)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
