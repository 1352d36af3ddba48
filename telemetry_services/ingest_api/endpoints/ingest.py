"""Endpoint de ingesta de lecturas (una o varias)."""

from __future__ import annotations

import logging
from typing import List, Union

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ...common.clock import Clock
from ...common.config import Settings
from ...common.retry import run_with_retry
from ..auth import require_api_key
from ..dependencies import get_app_settings, get_clock, get_db_engine, get_transports
from ..ingest.handlers import BatchSummary
from ..ingest.validation import RawReading
from ..schemas import IngestSummaryOut, ReadingIn
from ..services import Transports, build_batch_handler, dispatch_notifications

router = APIRouter(tags=["ingest"])
logger = logging.getLogger(__name__)


def _to_raw(r: ReadingIn) -> RawReading:
    return RawReading(
        sensor_id=r.sensor_id,
        value=r.value,
        sensor_type=r.sensor_type,
        sequence_no=r.sequence_no,
        aux_sum=r.aux_sum,
        aux_count=r.aux_count,
        observed_at=r.observed_at,
    )


@router.post(
    "/ingest/readings",
    response_model=IngestSummaryOut,
    dependencies=[Depends(require_api_key)],
)
def ingest_readings(
    payload: Union[ReadingIn, List[ReadingIn]],
    engine: Engine = Depends(get_db_engine),
    settings: Settings = Depends(get_app_settings),
    transports: Transports = Depends(get_transports),
    clock: Clock = Depends(get_clock),
):
    """Ingesta de una lectura o de un lote.

    El lote completo va en una transacción: los SKIP no abortan nada, un
    error de BD hace rollback de todo (se reintenta si es transitorio).
    Las notificaciones se envían después del commit; si el envío falla por
    BD quedan PENDING para el job de despacho.
    """
    readings = payload if isinstance(payload, list) else [payload]
    raws = [_to_raw(r) for r in readings]

    def work(conn: Connection) -> BatchSummary:
        handler = build_batch_handler(conn, settings, clock=clock)
        return handler.ingest(raws)

    try:
        summary = run_with_retry(engine, work)
    except SQLAlchemyError as e:
        logger.exception("[INGEST] DB error in /ingest/readings err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail=f"DB error: {type(e).__name__}")

    if settings.notification.dispatch_inline and summary.notification_ids:
        try:
            dispatch_notifications(
                engine, settings, summary.notification_ids, transports=transports, clock=clock
            )
        except SQLAlchemyError:
            logger.exception("[NOTIFY] Post-commit dispatch failed; rows stay PENDING")

    return IngestSummaryOut(**summary.to_dict())
