"""Shared test fixtures for chartdesk."""

from __future__ import annotations

import pytest

from chartdesk.config import FetchConfig
from chartdesk.market.cache import TTLCache
from tests.factories import FakeClock, RecordingSleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def fetch_config() -> FetchConfig:
    """Defaults with instant inter-batch delays."""
    return FetchConfig(batch_delay_seconds=0.0)


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(default_ttl=300.0, clock=clock)
