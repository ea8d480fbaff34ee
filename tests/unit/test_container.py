"""Tests for ServiceContainer wiring."""
import logging

import pytest

from supamcp.adapters.management_api import ManagementApiPlatform
from supamcp.container import ServiceContainer, log_event
from supamcp.domains.query_governor import QueryAutoLimited
from supamcp.models.config_models import ServerConfig
from tests.unit.helpers.fake_platform import FakePlatform


class TestServiceContainer:
    __test__ = True

    def test_services_are_created_once(self):
        container = ServiceContainer(config=ServerConfig(access_token="t"))
        assert container.processor is container.processor
        assert container.governor is container.governor
        assert container.profiles is container.profiles
        assert container.retry is container.retry
        assert container.cache is container.cache

    def test_retry_uses_config(self):
        container = ServiceContainer(config=ServerConfig(retry_attempts=5, retry_delay=0.1))
        assert container.retry.max_attempts == 5
        assert container.retry.retry_delay == 0.1

    def test_cache_disabled(self):
        container = ServiceContainer(config=ServerConfig(cache_enabled=False))
        assert container.cache is None
        assert container.get_stats()["cache"] is None

    def test_cache_uses_configured_size(self):
        container = ServiceContainer(config=ServerConfig(cache_max_size=7))
        assert container.cache.max_size == 7

    def test_platform_requires_token(self):
        with pytest.raises(RuntimeError, match="SUPABASE_ACCESS_TOKEN"):
            ServiceContainer(config=ServerConfig()).platform

    @pytest.mark.asyncio
    async def test_platform_built_from_config(self):
        container = ServiceContainer(config=ServerConfig(access_token="sbp_x"))
        platform = container.platform
        assert isinstance(platform, ManagementApiPlatform)
        assert container.get_stats()["platform_initialized"] is True
        await container.aclose()
        assert container.get_stats()["platform_initialized"] is False

    @pytest.mark.asyncio
    async def test_aclose_releases_platform_and_cache(self, container, platform):
        container.cache.set("k", 1)
        await container.aclose()
        assert platform.closed
        assert container.cache.size() == 0

    def test_events_reach_publisher(self, container, events):
        container.governor.govern("SELECT * FROM users")
        assert any(isinstance(event, QueryAutoLimited) for event in events)

    def test_stats(self, container):
        stats = container.get_stats()
        assert stats["cache_enabled"] is True
        assert stats["cache"]["size"] == 0
        assert stats["read_only"] is False

    def test_injected_platform_is_used(self):
        fake = FakePlatform()
        container = ServiceContainer(config=ServerConfig(), _platform=fake)
        assert container.platform is fake


class TestLogEvent:
    __test__ = True

    def test_logs_event_dict(self, caplog):
        event = QueryAutoLimited(original_sql="a", governed_sql="b", limit=1)
        with caplog.at_level(logging.DEBUG, logger="supamcp.container"):
            log_event(event)
        assert "QueryAutoLimited" in caplog.text

    def test_plain_objects(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="supamcp.container"):
            log_event("something happened")
        assert "something happened" in caplog.text
