"""Tests for operational endpoints and HTTP middleware."""

import pytest
from fastapi import HTTPException, status

from src.library.api.http.deps import get_database_service, get_metrics
from src.library.api.http.middleware import limiter as limiter_module
from src.library.api.http.middleware.limiter import configure_rate_limiter
from src.library.core.services import NullEventPublisher


class _DownDatabase:
    backend = "postgresql"

    def health_check(self) -> bool:
        return False


class _BrokenMetrics:
    def render(self):
        raise RuntimeError("registry gone")


async def _deny(request, response):
    raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")


@pytest.fixture
def denying_limiter():
    configure_rate_limiter(lambda *args: _deny)
    try:
        yield
    finally:
        limiter_module._rate_limiter_factory = None
        limiter_module._create_rate_limiter.cache_clear()


class TestHealthEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"
        assert body["uptime"] >= 0
        assert "timestamp" in body

    def test_health_reports_lost_database(self, client, db_service, monkeypatch):
        monkeypatch.setattr(db_service, "health_check", lambda: False)

        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "disconnected"

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["database"]["type"] == "sqlite"
        assert body["checks"]["cache"]["status"] == "healthy"
        assert body["checks"]["events"]["status"] == "healthy"

    def test_not_ready_without_database(self, client, db_service, monkeypatch):
        monkeypatch.setattr(db_service, "health_check", lambda: False)

        response = client.get("/health/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "not_ready"

    def test_cache_and_events_never_block_readiness(
        self, client, app_dependencies, fake_redis
    ):
        fake_redis.fail = True
        app_dependencies.event_publisher = NullEventPublisher()

        response = client.get("/health/ready")

        assert response.status_code == status.HTTP_200_OK
        checks = response.json()["checks"]
        assert checks["cache"]["status"] == "degraded"
        assert checks["events"]["status"] == "disabled"

    def test_health_resolves_database_through_dependency(self, client):
        client.app.dependency_overrides[get_database_service] = lambda: _DownDatabase()

        health = client.get("/health")
        ready = client.get("/health/ready")

        assert health.json()["database"] == "disconnected"
        assert ready.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert ready.json()["checks"]["database"]["type"] == "postgresql"

    def test_no_database_pool_route(self, client):
        response = client.get("/health/database")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestMetricsEndpoint:
    def test_exposes_request_and_catalog_metrics(self, client):
        client.get("/api/books")

        response = client.get("/metrics")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/plain")
        text = response.text
        assert "books_total 0.0" in text
        assert 'route="/api/books"' in text
        assert "http_request_duration_seconds_bucket" in text

    def test_renders_metrics_from_dependency(self, client):
        client.app.dependency_overrides[get_metrics] = lambda: _BrokenMetrics()

        response = client.get("/metrics")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Metrics unavailable"}


class TestMiddleware:
    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in response.headers

    def test_request_id_is_generated(self, client):
        response = client.get("/health")

        assert response.headers["X-Request-ID"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.parametrize("path", ["/health", "/health/ready", "/metrics", "/api/books"])
    def test_rate_limit_covers_every_route(self, client, denying_limiter, path):
        response = client.get(path)

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json() == {"message": "Too many requests"}
