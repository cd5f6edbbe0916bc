"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from src.library.api.http.app_data import ApplicationDependencies, build_dependencies
from src.library.api.http.deps import get_metrics
from src.library.api.http.middleware.limiter import (
    close_rate_limiter,
    configure_rate_limiter,
    configure_redis_rate_limiter,
    rate_limit,
)
from src.library.api.http.routers.books import router as books_router
from src.library.api.http.routers.health import router as health_router
from src.library.api.utils.app_startup import configure_logging
from src.library.core.errors import CatalogError
from src.library.core.services import CatalogMetrics
from src.library.runtime.context import get_config

# Load configuration
main_config = get_config()


# Initialize logging
configure_logging()


# --- Security middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        # HSTS only in prod
        if get_config().app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


# --- Request metrics middleware ---
class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Record duration and count of every request, labelled by route template."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)

        app_deps: ApplicationDependencies | None = getattr(
            request.app.state, "app_dependencies", None
        )
        if app_deps is not None:
            route = request.scope.get("route")
            app_deps.metrics.observe_request(
                request.method,
                getattr(route, "path", None) or request.url.path,
                response.status_code,
                time.perf_counter() - start,
            )
        return response


# --- FastAPI app setup ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Allow FastAPI to run startup/shutdown routines once per process

    await startup()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(
    title="Library Catalog API",
    lifespan=lifespan,
    # Quotas cover every route, health and metrics included
    dependencies=[Depends(rate_limit())],
    docs_url=None if main_config.app.environment == "production" else "/docs",
    redoc_url=None if main_config.app.environment == "production" else "/redoc",
)

app.add_middleware(SecurityHeadersMiddleware)

if main_config.metrics.enabled:
    app.add_middleware(RequestMetricsMiddleware)

# expose startup for tests
__all__ = ["app", "startup", "shutdown"]

# --- CORS configuration ---
if main_config.app.environment == "production" and (
    "*" in main_config.app.cors.origins
):
    raise RuntimeError(
        "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=main_config.app.cors.origins,
    allow_credentials=main_config.app.cors.allow_credentials,
    allow_methods=main_config.app.cors.allow_methods,
    allow_headers=main_config.app.cors.allow_headers,
)


# --- Request logging middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Correlation / tracing
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    xff = request.headers.get("x-forwarded-for")
    client_ip = (
        xff.split(",")[0].strip()
        if xff
        else request.client.host
        if request.client
        else "unknown"
    )

    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "user_agent": request.headers.get("user-agent", "unknown"),
    }

    start = time.perf_counter()

    # Everything that logs within this block inherits base_ctx
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            # Attach correlation id
            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except HTTPException as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=exc.status_code,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=exc.status_code,
                content={"message": exc.detail, "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"message": "Something broke!", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )


# --- Error rendering ---
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"message": "Validation failed", "errors": errors}
    )


# --- Router registration ---
app.include_router(health_router)
app.include_router(books_router, prefix="/api/books")


if main_config.metrics.enabled:

    @app.get(main_config.metrics.path, include_in_schema=False)
    async def metrics(catalog_metrics: CatalogMetrics = Depends(get_metrics)) -> Response:
        """Prometheus exposition of the service registry."""
        try:
            content, content_type = catalog_metrics.render()
        except Exception:
            logger.exception("Failed to render metrics")
            return JSONResponse(status_code=500, content={"error": "Metrics unavailable"})
        return Response(content=content, media_type=content_type)


# --- Rate limiter setup ---
async def _initialize_rate_limiter(deps: ApplicationDependencies) -> None:
    config = get_config()
    if not config.rate_limiter.enabled:
        logger.info("Rate limiting disabled by configuration")
        return

    redis_client = deps.redis_service.get_client()
    if redis_client is None:
        logger.info("Redis not configured; using in-memory rate limiter")
        configure_rate_limiter()
        return

    try:
        await configure_redis_rate_limiter(redis_client)
    except Exception:
        logger.exception("Failed to initialize FastAPI limiter with Redis")
        if config.app.environment == "production":
            raise
        logger.warning("Falling back to in-memory rate limiter")
        configure_rate_limiter()


# --- Lifecycle hooks ---
async def startup() -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    deps = build_dependencies(config)
    app.state.app_dependencies = deps

    if config.database.create_tables:
        deps.database_service.create_all()

    if not deps.database_service.health_check():
        logger.error("Database unreachable at startup")
        if config.app.environment == "production":
            raise RuntimeError("Database readiness check failed")

    await _initialize_rate_limiter(deps)
    logger.bind(
        cache_enabled=deps.list_cache.is_enabled,
        events_enabled=deps.event_publisher.is_available(),
    ).info("Application started")


async def shutdown() -> None:
    logger.info("Shutting down application")
    await close_rate_limiter()
    app_dependencies: ApplicationDependencies | None = getattr(
        app.state, "app_dependencies", None
    )
    if app_dependencies is None:
        return
    await app_dependencies.redis_service.close()
    app_dependencies.database_service.dispose()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=main_config.app.host,
        port=main_config.app.port,
        access_log=False,  # We handle access logging in middleware
    )
