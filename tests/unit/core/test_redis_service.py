"""Tests for the shared Redis client holder."""

from unittest.mock import AsyncMock

import pytest

from src.library.core.services import RedisService
from src.library.runtime.config.config_data import ConfigData, RedisConfig
from src.library.runtime.context import with_context


@pytest.fixture
def app_context():
    with with_context(ConfigData()):
        yield


class TestRedisService:
    @pytest.mark.asyncio
    async def test_disabled_has_no_client(self, app_context):
        service = RedisService(RedisConfig(enabled=False, url="redis://localhost:6379/0"))

        assert service.get_client() is None
        assert service.is_enabled is False
        assert await service.health_check() is False

    def test_missing_url_has_no_client(self, app_context):
        service = RedisService(RedisConfig(url=""))

        assert service.get_client() is None
        assert service.is_enabled is False

    def test_client_is_created_without_connecting(self, app_context):
        service = RedisService(RedisConfig(url="redis://localhost:6379/0"))

        assert service.get_client() is not None
        assert service.is_enabled is True

    @pytest.mark.asyncio
    async def test_health_check_pings(self, app_context):
        service = RedisService(RedisConfig(url="redis://localhost:6379/0"))
        service._client = AsyncMock()
        service._client.ping.return_value = True

        assert await service.health_check() is True

        service._client.ping.side_effect = ConnectionError("down")
        assert await service.health_check() is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, app_context):
        service = RedisService(RedisConfig(url="redis://localhost:6379/0"))
        client = AsyncMock()
        client.aclose.side_effect = ConnectionError("already gone")
        service._client = client

        await service.close()

        client.aclose.assert_awaited_once()
        assert service.get_client() is None
        assert service.is_enabled is False
