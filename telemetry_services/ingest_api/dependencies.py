"""Dependencias FastAPI compartidas por los endpoints.

Los tests sustituyen ``get_db_engine``, ``get_transports`` y ``get_clock``
con ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator

from fastapi import Depends
from sqlalchemy.engine import Connection, Engine

from ..common.clock import Clock, SystemClock
from ..common.config import Settings, get_settings
from ..common.db import get_engine
from .notifications import build_transports
from .services import Transports


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_db_engine() -> Engine:
    return get_engine()


def get_connection(engine: Engine = Depends(get_db_engine)) -> Iterator[Connection]:
    """Una transacción por request: commit al terminar, rollback si hay error."""
    with engine.begin() as conn:
        yield conn


def get_transports(settings: Settings = Depends(get_app_settings)) -> Transports:
    return build_transports(settings.notification)


def get_clock() -> Clock:
    return SystemClock()
