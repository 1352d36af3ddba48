"""Módulo de endpoints HTTP.

Contiene todos los endpoints del servicio organizados por función.
"""

from .health import router as health_router
from .ingest import router as ingest_router
from .alarms import router as alarms_router
from .notifications import router as notifications_router
from .analytics import router as analytics_router

__all__ = [
    "health_router",
    "ingest_router",
    "alarms_router",
    "notifications_router",
    "analytics_router",
]
