from dataclasses import dataclass

from src.library.core.services import (
    BookListCache,
    CatalogMetrics,
    CatalogService,
    DbSessionService,
    EventPublisher,
    RedisService,
    build_event_publisher,
)
from src.library.runtime.config.config_data import ConfigData


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    redis_service: RedisService
    list_cache: BookListCache
    event_publisher: EventPublisher
    metrics: CatalogMetrics
    catalog_service: CatalogService


def build_dependencies(
    config: ConfigData,
    database_service: DbSessionService | None = None,
    redis_service: RedisService | None = None,
) -> ApplicationDependencies:
    """Construct every collaborator once and wire them into the catalog service."""
    database_service = database_service or DbSessionService(config.database)
    redis_service = redis_service or RedisService(config.redis)
    redis_client = redis_service.get_client()

    list_cache = BookListCache(redis_client, config.cache)
    event_publisher = build_event_publisher(redis_client, enabled=config.events.enabled)
    metrics = CatalogMetrics()

    catalog_service = CatalogService(
        database_service=database_service,
        list_cache=list_cache,
        publisher=event_publisher,
        metrics=metrics,
        exchange=config.events.exchange,
    )

    return ApplicationDependencies(
        database_service=database_service,
        redis_service=redis_service,
        list_cache=list_cache,
        event_publisher=event_publisher,
        metrics=metrics,
        catalog_service=catalog_service,
    )
