"""FastAPI application factory and lifespan management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from drive.config import Settings
from drive.events import EventHub
from drive.middleware.cors import configure_cors
from drive.middleware.logging import RequestLoggingMiddleware
from drive.routes import events, files, health
from drive.storage import FileStore, StoreError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the event hub and the file store on startup, wiring the hub in
    as the store's notifier, and stops the hub on shutdown so every open
    observer outbox is closed.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    event_hub = EventHub(
        broadcast_queue_size=settings.hub_broadcast_queue_size,
        filter_subscriptions=settings.hub_filter_subscriptions,
    )
    file_store = FileStore(
        settings.root_dir,
        notifier=event_hub,
        max_upload_size=settings.max_upload_bytes,
        chunk_size=settings.upload_chunk_bytes,
        max_edit_size=settings.max_edit_bytes,
    )

    app.state.event_hub = event_hub
    app.state.file_store = file_store

    event_hub.start()
    logger.info("file_store_ready", root=str(file_store.root))

    try:
        yield
    finally:
        await event_hub.stop()
        logger.info("api_shutdown")


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Render a StoreError as its structured error response.

    Args:
        request: Request that failed.
        exc: The raised StoreError.

    Returns:
        JSON error body with the status mapped from the error kind.
    """
    logger.warning(
        "store_error",
        kind=exc.kind,
        error=exc.message,
        request_id=exc.request_id,
        debug=exc.debug,
        method=request.method,
        path=request.url.path,
    )
    return JSONResponse(
        content=exc.to_response().model_dump(exclude_none=True),
        status_code=exc.status_code,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Public Drive API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    configure_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(files.router, prefix="/api/v1")

    return app
