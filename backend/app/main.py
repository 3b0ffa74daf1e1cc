from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import PlaceStore
from .errors import ServiceUnavailable, StartupError, register_error_handlers
from .rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from .routes.places import router as places_router
from .schemas import HealthResponse, ServiceInfoResponse
from .security_headers import SecurityHeadersMiddleware
from .telemetry.logging_utils import configure_logging
from .telemetry.middleware import TelemetryMiddleware

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "GET /health": "Health check",
    "GET /api/v1/places": "Get places with filtering and pagination",
    "GET /api/v1/places/count": "Get count of places matching filters",
    "GET /api/v1/places/stream": "Stream places as NDJSON",
    "GET /api/v1/stats": "Get database statistics",
}


def create_app(settings: Settings | None = None, store: PlaceStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.perf_log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.store = store or PlaceStore.from_settings(settings)
        ready = await app.state.store.wait_until_ready(
            settings.startup_connect_attempts,
            settings.startup_retry_delay_seconds,
        )
        if not ready:
            await app.state.store.dispose()
            raise StartupError("Failed to connect to database after multiple attempts")
        logger.info("%s ready (pool size %s)", settings.app_name, settings.db_pool_size)
        try:
            yield
        finally:
            logger.info("Draining database pool")
            await app.state.store.dispose()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.settings = settings

    limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_ms / 1000.0,
    )
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    register_error_handlers(app)

    app.include_router(places_router)

    @app.get("/health", response_model=HealthResponse, responses={503: {"model": HealthResponse}})
    async def healthcheck(request: Request) -> JSONResponse:
        connected = await request.app.state.store.ping()
        payload = HealthResponse(
            status="healthy" if connected else "unhealthy",
            database="connected" if connected else "disconnected",
            timestamp=datetime.now(timezone.utc),
        )
        status_code = 200 if connected else ServiceUnavailable.status_code
        return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))

    @app.get("/", response_model=ServiceInfoResponse)
    async def service_info() -> ServiceInfoResponse:
        return ServiceInfoResponse(
            name=settings.app_name,
            version=settings.version,
            description="API for business places with filtering, pagination, statistics and NDJSON streaming",
            endpoints=ENDPOINTS,
        )

    return app


app = create_app()
