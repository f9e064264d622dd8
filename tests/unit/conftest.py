"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().

MongoDB is replaced by mongomock; time is a FakeClock that tests advance by
hand.
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest

from infrastructure.rate_limit.mongo_counter import MongoCounterStore
from infrastructure.seed_store import MongoSeedStore
from infrastructure.verification_store import MongoVerificationStore
from services.code_generator import CodeGenerator
from services.rate_limiter import AttemptLimiter
from services.verification_service import VerificationService

# mongomock enforces TTL indexes against the wall clock, so the fake clock
# starts a day ahead of it. Rounded down to a 600s boundary (which is also a
# 30s boundary) so limiter windows and totp buckets start exactly here;
# tests that need a mid-window start advance the clock first.
_WINDOW = 600
_AHEAD = datetime.now(timezone.utc) + timedelta(days=1)
START = datetime.fromtimestamp(
    int(_AHEAD.timestamp()) // _WINDOW * _WINDOW, tz=timezone.utc
)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_db():
    return mongomock.MongoClient().db


@pytest.fixture
def store(mock_db, clock):
    store = MongoVerificationStore(mock_db["verification-requests"], clock)
    store.ensure_indexes()
    return store


@pytest.fixture
def seeds(mock_db, clock):
    seeds = MongoSeedStore(mock_db["authenticator-seeds"], clock)
    seeds.ensure_indexes()
    return seeds


@pytest.fixture
def counters(mock_db, clock):
    return MongoCounterStore(mock_db["verification-attempts"], clock)


@pytest.fixture
def limiter(counters):
    return AttemptLimiter(
        counters,
        max_attempts_per_target=3,
        max_attempts_per_client=10,
        window_seconds=600,
    )


@pytest.fixture
def service(store, seeds, limiter, clock):
    return VerificationService(
        store,
        limiter,
        CodeGenerator(clock),
        seeds=seeds,
        clock=clock,
        verify_base_url="https://example.com/verify",
        issuer_name="Example",
    )
