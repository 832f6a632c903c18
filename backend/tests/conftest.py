"""
Main pytest configuration for toolkit tests.

Fixtures for clocks, retry sleeps and a fake case API.
"""

import os
from typing import Any, Callable, List

import pytest

# Set test environment variables before importing toolkit modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from legajos.core.config import Settings
from legajos.infrastructure.http.fetcher import LegajoEndpoints
from tests.fixtures.fakes import (
    BASE_URL,
    FakeCaseApi,
    FakeMonotonicClock,
    FakeUtcClock,
    RecordingSleep,
)


@pytest.fixture
def monotonic_clock():
    return FakeMonotonicClock()


@pytest.fixture
def utc_clock():
    return FakeUtcClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def test_settings():
    """Settings isolated from .env files, with deterministic retry delays."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        API_BASE_URL=BASE_URL,
        RETRY_JITTER=False,
    )


@pytest.fixture
def endpoints():
    return LegajoEndpoints(base_url=BASE_URL)


@pytest.fixture
def fake_api(endpoints):
    return FakeCaseApi(endpoints)


@pytest.fixture
def listener_factory() -> Callable[[], Callable[[Any], None]]:
    """Build listeners that record every value they receive in ``.received``."""

    def factory():
        received: List[Any] = []

        def listener(value: Any) -> None:
            received.append(value)

        listener.received = received
        return listener

    return factory


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
