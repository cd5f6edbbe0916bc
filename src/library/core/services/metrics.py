"""Prometheus metrics for the catalog service."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class CatalogMetrics:
    """Owns a dedicated registry so tests and app instances never collide."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            buckets=(0.1, 0.5, 1, 2, 5),
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.books_total = Gauge(
            "books_total",
            "Number of books returned by the last uncached list query",
            registry=self.registry,
        )

    def observe_request(
        self, method: str, route: str, status_code: int, duration_seconds: float
    ) -> None:
        labels = (method, route, str(status_code))
        self.http_request_duration.labels(*labels).observe(duration_seconds)
        self.http_requests_total.labels(*labels).inc()

    def set_books_total(self, count: int) -> None:
        self.books_total.set(count)

    def render(self) -> tuple[bytes, str]:
        """Exposition payload and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
