from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from leaveflow.api.health import router as health_router
from leaveflow.api.router import api_router
from leaveflow.config import get_settings
from leaveflow.db import dispose_engine
from leaveflow.exceptions import setup_exception_handlers
from leaveflow.middleware import setup_middleware
from leaveflow.services.notification import QueuedNotificationSink, get_notification_sink, set_notification_sink

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Start the notification dispatcher on startup; flush it and the engine on shutdown."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)

    downstream = get_notification_sink()
    queued = QueuedNotificationSink(downstream)
    queued.start()
    set_notification_sink(queued)
    try:
        yield
    finally:
        await queued.stop()
        set_notification_sink(downstream)
        await dispose_engine()
        logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
