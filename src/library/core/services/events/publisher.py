"""Topic-based event publication.

Events are addressed by an exchange and a routing key, AMQP-style. The Redis
implementation maps them onto pub/sub channels named
``"{exchange}.{routing_key}"`` so subscribers can pattern-subscribe to
``library_events.*``. Publication is fire-and-forget: nothing waits for a
consumer to acknowledge.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger


class EventPublisher(ABC):
    """Abstract interface for event publication backends."""

    @abstractmethod
    async def publish(
        self, exchange: str, routing_key: str, payload: dict[str, Any]
    ) -> None:
        """Send ``payload`` to ``routing_key`` on ``exchange``.

        Raises whatever the underlying transport raises; callers decide
        whether a failure matters.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """True when events actually leave the process."""


class NullEventPublisher(EventPublisher):
    """Publisher used when event publication is disabled."""

    async def publish(
        self, exchange: str, routing_key: str, payload: dict[str, Any]
    ) -> None:
        logger.debug("Event publication disabled; dropping {}.{}", exchange, routing_key)

    def is_available(self) -> bool:
        return False


class RedisEventPublisher(EventPublisher):
    """Redis pub/sub publisher."""

    def __init__(self, redis_client):
        self._redis = redis_client

    @staticmethod
    def channel_name(exchange: str, routing_key: str) -> str:
        return f"{exchange}.{routing_key}"

    async def publish(
        self, exchange: str, routing_key: str, payload: dict[str, Any]
    ) -> None:
        channel = self.channel_name(exchange, routing_key)
        receivers = await self._redis.publish(channel, json.dumps(payload, default=str))
        logger.debug("Published event to {} ({} receivers)", channel, receivers)

    def is_available(self) -> bool:
        return True


def build_event_publisher(redis_client, enabled: bool = True) -> EventPublisher:
    """Pick the publisher for the current configuration."""
    if not enabled:
        logger.info("Event publication disabled by configuration")
        return NullEventPublisher()
    if redis_client is None:
        logger.warning("Redis unavailable; catalog events will not be published")
        return NullEventPublisher()
    return RedisEventPublisher(redis_client)
