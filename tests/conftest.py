"""
tests/conftest.py
──────────────────
Shared pytest fixtures.

Fixtures
--------
clock
    ``FakeClock`` the stores read time from; advance it instead of sleeping.

fetcher
    ``StubFetcher`` that records calls and replays queued results/errors.

store / coordinator
    In-memory store and coordinator wired to the two fakes above.

client / admin
    ``TestClient`` on an app built around ``coordinator``; ``admin`` is the
    identity injected for privileged routes (set ``identity_holder`` to None
    or another ``Identity`` to simulate other callers).
"""

import pytest
from fastapi.testclient import TestClient

from miusage_feed.app import create_app
from miusage_feed.security import REFRESH_CAPABILITY, Identity, get_identity
from miusage_feed.services.cache import MemoryCacheStore
from miusage_feed.services.coordinator import DataCoordinator

ENDPOINT = "https://miusage.com/v1/challenge/1/"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubFetcher:
    """Stand-in for ``Fetcher``: pops queued results, raising exceptions."""

    endpoint = ENDPOINT

    def __init__(self):
        self.results: list = []
        self.calls = 0

    def queue(self, *results) -> "StubFetcher":
        self.results.extend(results)
        return self

    def fetch(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


# ── Core fakes ────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def coordinator(store, fetcher) -> DataCoordinator:
    return DataCoordinator(store, fetcher, ttl=3600, refresh_flag_ttl=60)


# ── HTTP client ───────────────────────────────────────────────────────────────


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="1", capabilities=frozenset({REFRESH_CAPABILITY}))


@pytest.fixture
def identity_holder(admin) -> dict:
    """Mutable slot so a test can swap the caller identity mid-test."""
    return {"identity": admin}


@pytest.fixture
def client(coordinator, identity_holder) -> TestClient:
    app = create_app(coordinator)
    app.dependency_overrides[get_identity] = lambda: identity_holder["identity"]
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
