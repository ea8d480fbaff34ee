"""Pytest fixtures shared by the unit tests."""

from __future__ import annotations

from typing import List

import pytest

from supamcp.container import ServiceContainer
from supamcp.domains.response_cache import ResponseCache
from supamcp.lib.retry import RetryHandler
from supamcp.models.config_models import ServerConfig
from tests.unit.helpers.fake_platform import FakePlatform
from tests.unit.helpers.sample_data import (
    SAMPLE_EXTENSIONS,
    SAMPLE_LOGS,
    SAMPLE_MIGRATIONS,
    SAMPLE_PERFORMANCE_ADVISORS,
    SAMPLE_SECURITY_ADVISORS,
    SAMPLE_TABLES,
    SAMPLE_TYPES,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def _no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def events() -> List[object]:
    return []


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform(
        tables=SAMPLE_TABLES,
        extensions=SAMPLE_EXTENSIONS,
        migrations=SAMPLE_MIGRATIONS,
        logs=SAMPLE_LOGS,
        security_advisors=SAMPLE_SECURITY_ADVISORS,
        performance_advisors=SAMPLE_PERFORMANCE_ADVISORS,
        types=SAMPLE_TYPES,
        sql_rows=[{"id": 1, "email": "a@example.com"}, {"id": 2, "email": None}],
    )


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig(access_token="test-token", project_ref="test-project")


@pytest.fixture
def container(config, platform, clock, events) -> ServiceContainer:
    return ServiceContainer(
        config=config,
        event_publisher=events.append,
        _platform=platform,
        _cache=ResponseCache(clock=clock, event_publisher=events.append),
        _retry=RetryHandler(max_attempts=3, retry_delay=0.01, sleep=_no_sleep),
    )
