"""Unit tests for rate limiting infrastructure."""

import pytest
from fastapi import HTTPException

from src.library.api.http.middleware import limiter as limiter_module
from src.library.api.http.middleware.limiter import (
    DefaultLocalRateLimiter,
    close_rate_limiter,
    configure_rate_limiter,
    get_rate_limiter,
    rate_limit,
)
from src.library.runtime.config.config_data import ConfigData, RateLimiterConfig
from src.library.runtime.context import with_context


@pytest.fixture(autouse=True)
def reset_limiter_state():
    """Ensure clean state for each test."""
    limiter_module._rate_limiter_factory = None
    limiter_module._local_limiters.clear()
    limiter_module._create_rate_limiter.cache_clear()
    try:
        yield
    finally:
        limiter_module._rate_limiter_factory = None
        limiter_module._local_limiters.clear()
        limiter_module._create_rate_limiter.cache_clear()


class TestDefaultLocalRateLimiter:
    """Test the in-memory rate limiter implementation."""

    @pytest.mark.asyncio
    async def test_allows_requests_within_limit(self, request_factory, response_factory):
        limiter = DefaultLocalRateLimiter(2, 10_000, False, False)

        request = request_factory()
        await limiter(request, response_factory())
        await limiter(request, response_factory())

    @pytest.mark.asyncio
    async def test_blocks_requests_when_limit_exceeded(
        self, request_factory, response_factory
    ):
        limiter = DefaultLocalRateLimiter(2, 5_000, False, False)
        request = request_factory()

        for _ in range(2):
            await limiter(request, response_factory())

        with pytest.raises(HTTPException) as exc_info:
            await limiter(request, response_factory())

        assert exc_info.value.status_code == 429
        assert "Retry-After" in exc_info.value.headers

    @pytest.mark.asyncio
    async def test_limits_are_per_client(self, request_factory, response_factory):
        limiter = DefaultLocalRateLimiter(1, 5_000, False, False)

        await limiter(request_factory(client=("10.0.0.1", 1)), response_factory())
        await limiter(request_factory(client=("10.0.0.2", 1)), response_factory())

    @pytest.mark.asyncio
    async def test_forwarded_for_header_identifies_client(
        self, request_factory, response_factory
    ):
        limiter = DefaultLocalRateLimiter(1, 5_000, False, False)
        await limiter(
            request_factory({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}),
            response_factory(),
        )

        with pytest.raises(HTTPException):
            await limiter(
                request_factory({"X-Forwarded-For": "203.0.113.5"}), response_factory()
            )

    def test_key_includes_method_and_path_when_configured(self, request_factory):
        limiter = DefaultLocalRateLimiter(1, 1_000, True, True)

        key = limiter._make_key(
            request_factory(method="POST", path="/api/books/"),
            per_endpoint=True,
            per_method=True,
        )

        assert key == "ip:127.0.0.1:POST:/api/books"

    @pytest.mark.asyncio
    async def test_cleanup_clears_tracked_clients(
        self, request_factory, response_factory
    ):
        limiter = DefaultLocalRateLimiter(1, 5_000, False, False)
        await limiter(request_factory(), response_factory())

        await limiter.cleanup()

        await limiter(request_factory(), response_factory())


class TestRateLimitDependency:
    @pytest.mark.asyncio
    async def test_unconfigured_limiter_allows_everything(
        self, request_factory, response_factory
    ):
        guard = rate_limit(requests=1, window_ms=60_000)

        for _ in range(3):
            await guard(request_factory(), response_factory())

    @pytest.mark.asyncio
    async def test_configured_local_limiter_enforces_quota(
        self, request_factory, response_factory
    ):
        configure_rate_limiter()
        guard = rate_limit(requests=1, window_ms=60_000)

        with with_context(ConfigData(rate_limiter=RateLimiterConfig(enabled=True))):
            await guard(request_factory(), response_factory())
            with pytest.raises(HTTPException) as exc_info:
                await guard(request_factory(), response_factory())

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_disabled_by_configuration(self, request_factory, response_factory):
        configure_rate_limiter()
        guard = rate_limit(requests=1, window_ms=60_000)

        with with_context(ConfigData(rate_limiter=RateLimiterConfig(enabled=False))):
            for _ in range(3):
                await guard(request_factory(), response_factory())

    def test_limiters_are_cached_per_configuration(self):
        configure_rate_limiter()

        first = get_rate_limiter(5, 1_000)
        assert get_rate_limiter(5, 1_000) is first
        assert get_rate_limiter(6, 1_000) is not first

    def test_custom_factory(self):
        calls = []

        async def _no_limit(request, response):
            return None

        def factory(times, milliseconds, per_endpoint, per_method):
            calls.append((times, milliseconds))
            return _no_limit

        configure_rate_limiter(limiter_factory=factory)

        assert get_rate_limiter(3, 2_000) is _no_limit
        assert calls == [(3, 2_000)]

    @pytest.mark.asyncio
    async def test_close_resets_state(self):
        configure_rate_limiter()
        get_rate_limiter(5, 1_000)
        assert limiter_module._local_limiters

        await close_rate_limiter()

        assert limiter_module._rate_limiter_factory is None
        assert limiter_module._local_limiters == []
