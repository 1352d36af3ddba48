from __future__ import annotations

import logging

from fastapi import FastAPI

from .. import __version__
from ..common.config import get_settings
from ..common.db import get_engine
from ..common.schema import ensure_schema
from .endpoints import (
    alarms_router,
    analytics_router,
    health_router,
    ingest_router,
    notifications_router,
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def create_app(create_schema: bool = False) -> FastAPI:
    """Crea la app. ``create_schema`` solo para desarrollo local."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    application = FastAPI(title="Telemetry Alerting Service", version=__version__)
    application.include_router(health_router)
    application.include_router(ingest_router)
    application.include_router(alarms_router)
    application.include_router(notifications_router)
    application.include_router(analytics_router)

    if create_schema:
        ensure_schema(get_engine())

    logger.info(
        "[APP] Started env=%s cooldown=%ss auto_resolve_n=%s routing=%s inline_dispatch=%s",
        settings.environment,
        settings.alarm.cooldown_seconds,
        settings.alarm.auto_resolve_n,
        settings.notification.routing,
        settings.notification.dispatch_inline,
    )
    return application


app = create_app()
