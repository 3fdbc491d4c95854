"""
FastAPI entrypoint for the Student Rideshare backend.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rideshare.core.config import Settings, settings as default_settings
from rideshare.core.errors import RideshareError, StorageUnavailable
from rideshare.core.logging_config import configure_logging
from rideshare.core.utils import format_error, format_response
from rideshare.db.session import HealthMonitor, StorageClient
from rideshare.api.router import api_router
from rideshare.services.cleanup_service import CleanupService, SweepScheduler

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Validation failed")


def create_app(
    app_settings: Optional[Settings] = None,
    storage: Optional[StorageClient] = None,
) -> FastAPI:
    """Build the application around a settings object and a storage client."""
    app_settings = app_settings or default_settings
    storage = storage or StorageClient.from_settings(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            storage.connect()
        except StorageUnavailable:
            # Keep serving; the health endpoint reports the outage
            logger.warning("Starting without a database connection")

        monitor = None
        if app_settings.DB_HEALTH_CHECK_INTERVAL > 0:
            monitor = HealthMonitor(storage, interval_seconds=app_settings.DB_HEALTH_CHECK_INTERVAL)
            monitor.start()
        scheduler = None
        if app_settings.ENABLE_SWEEPER:
            scheduler = SweepScheduler(
                CleanupService.from_settings(storage, app_settings),
                interval_hours=app_settings.AUTO_CLEANUP_INTERVAL_HOURS,
            )
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.stop()
        if monitor is not None:
            monitor.stop()
        storage.close()

    configure_logging(source="api", level=app_settings.LOG_LEVEL)

    app = FastAPI(
        title=f"{app_settings.APP_NAME} API",
        description="Backend API for students sharing rides",
        version="1.0.0",
        debug=app_settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.storage = storage

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RideshareError)
    async def rideshare_error_handler(request: Request, exc: RideshareError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=format_error(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=format_error(_validation_message(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=format_error(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content=format_error("Internal server error"))

    api_prefix = f"/api/{app_settings.API_VERSION}"

    # Include API routes
    app.include_router(api_router, prefix=api_prefix)

    @app.get("/")
    def root():
        """Liveness endpoint."""
        return format_response(message="Student Rideshare API is running!")

    @app.get(f"{api_prefix}/health")
    def health():
        """Readiness endpoint; 503 while the database is unreachable."""
        healthy = storage.health_check()
        body = format_response(
            {"database": "connected" if healthy else "disconnected"},
            "Service is healthy" if healthy else "Database unavailable",
        )
        if not healthy:
            body["success"] = False
            return JSONResponse(status_code=503, content=body)
        return body

    return app


app = create_app()
