"""Despacho diferido de notificaciones PENDING.

Se usa cuando NOTIFY_DISPATCH_INLINE está desactivado, o para recoger las que
quedaron PENDING por un fallo tras el commit. Cada notificación se despacha
en su propia transacción, en orden de id.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from sqlalchemy.engine import Engine

from ...common.clock import Clock
from ...common.config import Settings
from ...ingest_api.notifications.repository import list_pending_ids
from ...ingest_api.services import Transports, dispatch_notifications

logger = logging.getLogger(__name__)


def dispatch_pending(
    engine: Engine,
    settings: Settings,
    limit: int = 100,
    transports: Optional[Transports] = None,
    clock: Clock | None = None,
) -> Counter:
    """Despacha hasta ``limit`` notificaciones PENDING. Devuelve conteo por estado."""
    with engine.connect() as conn:
        ids = list_pending_ids(conn, limit=limit)

    counts = dispatch_notifications(engine, settings, ids, transports=transports, clock=clock)

    if ids:
        logger.info("[NOTIFY] Pending dispatch done total=%d %s", len(ids), dict(counts))
    return counts
