"""FastAPI dependency implementations."""

from __future__ import annotations

from fastapi import Request

from src.library.api.http.app_data import ApplicationDependencies
from src.library.core.services import (
    CatalogMetrics,
    CatalogService,
    DbSessionService,
    EventPublisher,
    RedisService,
)


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    """Get the dependencies built at startup."""
    return request.app.state.app_dependencies


def get_catalog_service(request: Request) -> CatalogService:
    """Get the catalog service instance."""
    return get_app_dependencies(request).catalog_service


def get_database_service(request: Request) -> DbSessionService:
    """Get the database service instance."""
    return get_app_dependencies(request).database_service


def get_redis_service(request: Request) -> RedisService:
    """Get the Redis service instance."""
    return get_app_dependencies(request).redis_service


def get_event_publisher(request: Request) -> EventPublisher:
    return get_app_dependencies(request).event_publisher


def get_metrics(request: Request) -> CatalogMetrics:
    """Get the metrics instance."""
    return get_app_dependencies(request).metrics
