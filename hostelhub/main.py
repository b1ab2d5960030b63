"""FastAPI application entry point."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from hostelhub.api.v1.router import api_router
from hostelhub.config import Settings, get_settings
from hostelhub.core.background_tasks import (
    run_occupancy_health_check,
    start_health_check_scheduler,
    stop_health_check_scheduler,
)
from hostelhub.core.exceptions import AppException
from hostelhub.core.locks import build_lock_provider
from hostelhub.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from hostelhub.database import AsyncSessionLocal, close_db, init_db
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.booking_workflow import BookingWorkflow
from hostelhub.services.notification_service import NotificationService
from hostelhub.services.payment_status_service import build_payment_status_provider

logger = logging.getLogger(__name__)


def build_workflow(settings: Settings) -> BookingWorkflow:
    """Wire the booking workflow and its collaborators from settings."""
    locks = build_lock_provider(settings)
    return BookingWorkflow(
        allocation=AllocationEngine(locks, allow_room_type_fallback=settings.allocation_room_type_fallback),
        payment_status=build_payment_status_provider(settings, AsyncSessionLocal),
        notifier=NotificationService(
            webhook_url=settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        ),
        locks=locks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name} ({settings.environment}, locks={settings.lock_backend})")

    if settings.debug:
        await init_db()

    asyncio.create_task(run_occupancy_health_check(trigger="startup"))
    health_check_task = asyncio.create_task(start_health_check_scheduler())

    yield

    stop_health_check_scheduler()
    health_check_task.cancel()
    try:
        await health_check_task
    except asyncio.CancelledError:
        pass

    await app.state.workflow.notifier.close()
    close_payment_status = getattr(app.state.workflow.payment_status, "close", None)
    if close_payment_status:
        await close_payment_status()
    await close_db()


def create_application(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="HostelHub - Hostel booking and bed allocation API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.workflow = build_workflow(settings)

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        content = {"detail": exc.detail, "error": exc.error_class}
        errors = getattr(exc, "errors", None)
        if errors:
            content["errors"] = errors
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=exc.headers,
        )

    # Middleware (order matters - first added = last executed)
    app.add_middleware(SecurityHeadersMiddleware)

    # Rate limiting (outside development only)
    if settings.environment != "development":
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_per_minute,
        )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    base_settings = get_settings()
    uvicorn.run(
        "hostelhub.main:app",
        host=base_settings.host,
        port=base_settings.port,
        reload=base_settings.debug,
        workers=1 if base_settings.debug else base_settings.workers,
    )
