"""Composición de los componentes del core sobre una conexión.

Cada unidad de trabajo (request, lote, job) construye sus objetos sobre su
propia conexión; no hay estado compartido entre transacciones salvo los
transportes (sin estado de BD).

El envío de notificaciones nunca ocurre dentro de la transacción de ingesta:
``dispatch_notifications`` despacha los ids ya confirmados, cada uno en su
propia transacción corta.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Optional, Tuple

from sqlalchemy.engine import Connection, Engine

from ..common.clock import Clock
from ..common.config import Settings
from ..common.retry import run_with_retry
from .ingest.handlers import BatchReadingHandler
from .notifications import (
    DispatchResult,
    EmailTransport,
    NotificationDispatcher,
    NotificationRouter,
    SmsTransport,
    build_transports,
)

logger = logging.getLogger(__name__)

Transports = Tuple[SmsTransport, EmailTransport]


def build_dispatcher(
    conn: Connection,
    settings: Settings,
    transports: Optional[Transports] = None,
    clock: Clock | None = None,
) -> NotificationDispatcher:
    sms, email = transports or build_transports(settings.notification)
    return NotificationDispatcher(
        conn,
        sms=sms,
        email=email,
        clock=clock,
        default_country_code=settings.notification.default_country_code,
    )


def build_router(
    conn: Connection,
    settings: Settings,
    clock: Clock | None = None,
) -> NotificationRouter:
    return NotificationRouter(conn, settings.notification, clock=clock)


def build_batch_handler(
    conn: Connection,
    settings: Settings,
    clock: Clock | None = None,
) -> BatchReadingHandler:
    return BatchReadingHandler(
        conn,
        config=settings.alarm,
        clock=clock,
        notifier=build_router(conn, settings, clock),
    )


def dispatch_notifications(
    engine: Engine,
    settings: Settings,
    notification_ids: Iterable[int],
    transports: Optional[Transports] = None,
    clock: Clock | None = None,
) -> Counter:
    """Despacha notificaciones ya confirmadas, una transacción por id.

    Devuelve el conteo por estado final (o por motivo si no hay estado).
    """
    transports = transports or build_transports(settings.notification)
    counts: Counter = Counter()
    for notification_id in notification_ids:

        def work(conn: Connection) -> DispatchResult:
            dispatcher = build_dispatcher(conn, settings, transports=transports, clock=clock)
            return dispatcher.dispatch(notification_id)

        result = run_with_retry(engine, work)
        counts[result.status.value if result.status else (result.reason or "UNKNOWN")] += 1
    return counts
