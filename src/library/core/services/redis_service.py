"""Shared Redis client for the list cache and event publication."""

import redis.asyncio as redis_async
from loguru import logger
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from src.library.runtime.config.config_data import RedisConfig
from src.library.runtime.context import get_config


class RedisService:
    """Owns the one Redis client the catalog talks to.

    When Redis is disabled or has no URL, ``get_client()`` returns ``None``;
    the list cache and the publisher then fall back to no-ops.
    """

    def __init__(self, redis_config: RedisConfig | None = None):
        config = get_config()
        redis_config = redis_config or config.redis
        self._client: redis_async.Redis | None = None

        if not redis_config.enabled:
            logger.info("Redis disabled; list cache and events are off")
            return
        if not redis_config.url:
            logger.warning("Redis URL not configured; list cache and events are off")
            return

        logger.info(
            "Connecting list cache and events to {}",
            redis_config.sanitized_connection_string,
        )
        # Connections open lazily, so an unreachable server only shows up
        # as failed cache and publish calls.
        self._client = redis_async.from_url(
            redis_config.connection_string,
            encoding="utf-8",
            decode_responses=redis_config.decode_responses,
            max_connections=redis_config.max_connections,
            socket_timeout=redis_config.socket_timeout,
            socket_connect_timeout=redis_config.socket_connect_timeout,
            retry=Retry(ExponentialBackoff(base=1, cap=10), retries=3),
            client_name=config.app.name,
        )

    def get_client(self) -> redis_async.Redis | None:
        return self._client

    @property
    def is_enabled(self) -> bool:
        return self._client is not None

    async def health_check(self) -> bool:
        """Ping Redis; False when disabled or unreachable."""
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.warning("Redis health check failed: {}", e)
            return False

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning("Error closing Redis connection: {}", e)
        finally:
            self._client = None
