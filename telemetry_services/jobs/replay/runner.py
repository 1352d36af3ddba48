"""Replay de lecturas históricas a través del mismo flujo que la ingesta.

Cada lectura es su propia unidad de trabajo (como en producción). Si el CSV
trae columna de tiempo y ``historical_clock`` está activo, el reloj sigue el
tiempo de las lecturas para que cooldown y rachas se comporten como en origen.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Iterator, Optional

import pandas as pd
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ...common.clock import Clock, FixedClock, SystemClock, to_naive_utc
from ...common.config import Settings
from ...common.retry import run_with_retry
from ...ingest_api.ingest.effects import AlarmCreated, ReadingEffect
from ...ingest_api.ingest.processor import ReadingProcessor
from ...ingest_api.ingest.validation import RawReading
from ...ingest_api.services import Transports, build_router, dispatch_notifications
from .config import ReplayConfig

logger = logging.getLogger(__name__)

_VALUE_COLUMNS = ("value", "data_value")
_TIME_COLUMNS = ("observed_at", "upload_at", "timestamp")
FAILED = "FAILED"


def _pick(columns, explicit: Optional[str], candidates) -> Optional[str]:
    if explicit:
        if explicit not in columns:
            raise ValueError(f"Columna no encontrada en el CSV: {explicit}")
        return explicit
    for c in candidates:
        if c in columns:
            return c
    return None


def read_chunks(cfg: ReplayConfig) -> Iterator[pd.DataFrame]:
    return pd.read_csv(cfg.csv_path, chunksize=max(1, cfg.chunk_size))


def replay_frame(
    engine: Engine,
    settings: Settings,
    frame: pd.DataFrame,
    cfg: ReplayConfig,
    counts: Counter,
    clock: Clock,
    transports: Optional[Transports] = None,
) -> Counter:
    """Procesa las filas de ``frame`` en orden y acumula efectos en ``counts``."""
    value_col = _pick(frame.columns, cfg.value_column, _VALUE_COLUMNS)
    if value_col is None:
        raise ValueError(f"El CSV no tiene columna de valor ({', '.join(_VALUE_COLUMNS)})")
    time_col = _pick(frame.columns, cfg.time_column, _TIME_COLUMNS)

    times = pd.to_datetime(frame[time_col], utc=True, errors="coerce") if time_col else None
    delay = 1.0 / cfg.speed if cfg.speed > 0 else 0.0

    for i, raw_value in enumerate(frame[value_col].tolist()):
        observed_at = None
        if times is not None and not pd.isna(times.iloc[i]):
            observed_at = to_naive_utc(times.iloc[i].to_pydatetime())
            if cfg.historical_clock and isinstance(clock, FixedClock):
                clock.set(observed_at)
        elif isinstance(clock, FixedClock):
            clock.advance(cfg.step_seconds)

        raw = RawReading(
            sensor_id=cfg.sensor_id,
            value=raw_value,
            sensor_type=cfg.sensor_type,
            observed_at=observed_at,
        )

        def work(conn: Connection) -> ReadingEffect:
            notifier = build_router(conn, settings, clock=clock)
            processor = ReadingProcessor(conn, config=settings.alarm, clock=clock, notifier=notifier)
            return processor.process(raw)

        try:
            effect = run_with_retry(engine, work)
        except SQLAlchemyError as e:
            counts[FAILED] += 1
            logger.error("[REPLAY] value=%r falló: %s", raw_value, e)
        else:
            counts[effect.effect.value] += 1
            logger.debug("[REPLAY] value=%r effect=%s", raw_value, effect.effect.value)
            if settings.notification.dispatch_inline and isinstance(effect, AlarmCreated):
                dispatch_notifications(
                    engine, settings, effect.notification_ids, transports=transports, clock=clock
                )

        if delay > 0:
            time.sleep(delay)

    return counts


def run_replay(
    engine: Engine,
    settings: Settings,
    cfg: ReplayConfig,
    transports: Optional[Transports] = None,
) -> Counter:
    counts: Counter = Counter()
    clock: Clock = FixedClock(SystemClock().now()) if cfg.historical_clock else SystemClock()

    for n, chunk in enumerate(read_chunks(cfg), start=1):
        replay_frame(engine, settings, chunk, cfg, counts, clock, transports)
        logger.info("[REPLAY] chunk=%d procesadas=%d", n, sum(counts.values()))

    return counts
