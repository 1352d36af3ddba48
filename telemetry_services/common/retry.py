"""Reintento de unidades de trabajo ante errores transitorios de BD."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# deadlock / serialization failure (PostgreSQL)
_RETRYABLE_PGCODES = {"40P01", "40001"}
# deadlock victim (SQL Server / MySQL)
_RETRYABLE_CODES = {1205, 1213}


def is_retryable(e: Exception) -> bool:
    """True si el error es transitorio y la transacción completa puede repetirse."""
    if not isinstance(e, DBAPIError):
        return False

    orig = getattr(e, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode in _RETRYABLE_PGCODES:
        return True

    args = getattr(orig, "args", ()) or ()
    if args:
        first = args[0]
        code = first[0] if isinstance(first, tuple) and first else first
        if code in _RETRYABLE_CODES:
            return True

    if isinstance(e, OperationalError) and "database is locked" in str(orig):
        return True

    return False


def run_with_retry(
    engine: Engine,
    work: Callable[[Connection], T],
    max_retries: int = 3,
) -> T:
    """Ejecuta ``work`` en una transacción; la repite entera si hay deadlock.

    Cualquier otro error hace rollback y se propaga (sin commits parciales).
    """
    for attempt in range(1, max_retries + 1):
        try:
            with engine.begin() as conn:
                return work(conn)
        except DBAPIError as e:
            if is_retryable(e) and attempt < max_retries:
                delay = min(1000 * (2 ** (attempt - 1)), 5000)
                jitter = random.uniform(0, delay * 0.1)
                total_delay = (delay + jitter) / 1000.0
                logger.warning(
                    "[DB] Error transitorio (intento %d/%d), reintentando en %.2fs...",
                    attempt, max_retries, total_delay,
                )
                time.sleep(total_delay)
                continue
            logger.error("[DB] Error en unidad de trabajo (intento %d/%d): %s", attempt, max_retries, e)
            raise
    raise RuntimeError("run_with_retry: max_retries debe ser >= 1")
