"""Core services exports."""

from .cache.list_cache import BookListCache
from .catalog_service import CatalogService
from .database.db_session import DbSessionService
from .events.publisher import (
    EventPublisher,
    NullEventPublisher,
    RedisEventPublisher,
    build_event_publisher,
)
from .metrics import CatalogMetrics
from .redis_service import RedisService

__all__ = [
    # Catalog
    "CatalogService",
    # Cache
    "BookListCache",
    # Events
    "EventPublisher",
    "NullEventPublisher",
    "RedisEventPublisher",
    "build_event_publisher",
    # Infrastructure
    "CatalogMetrics",
    "DbSessionService",
    "RedisService",
]
