"""Procesamiento de una lectura: validar → persistir → evaluar alarma.

Orden del flujo (cada paso puede cortar con un SKIP):

1. Valor numérico finito                 → SKIP_INVALID_VALUE
2. Sensor existente (fila bloqueada)     → SKIP_NO_SENSOR
3. Tipo soportado                        → SKIP_INVALID_TYPE
4. Insert idempotente de la lectura      (si ya existía se marca ``duplicate``
                                            y la evaluación continúa)
5. Alarmas habilitadas                   → SKIP_ALARM_OFF
6. Al menos un umbral configurado        → SKIP_NO_THRESHOLD
7. Clasificación + ciclo de vida de alarmas

Todo ocurre en la conexión/transacción recibida; el commit es del llamador.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.clock import Clock, SystemClock
from ...common.config import AlarmConfig
from ..alarms.lifecycle import AlarmLifecycleManager, AlarmNotifier
from .effects import IngestEffect, ReadingEffect, Skip
from .reading_repository import SensorConfig, get_sensor_config, insert_reading
from .thresholds import classify
from .validation import RawReading, ReadingValidator

logger = logging.getLogger(__name__)


class ReadingProcessor:
    """Procesa lecturas una a una dentro de la transacción del llamador."""

    def __init__(
        self,
        db: Session | Connection,
        config: AlarmConfig | None = None,
        clock: Clock | None = None,
        notifier: Optional[AlarmNotifier] = None,
        validator: ReadingValidator | None = None,
    ) -> None:
        self._db = db
        self._clock = clock or SystemClock()
        self._validator = validator or ReadingValidator()
        self._lifecycle = AlarmLifecycleManager(
            db, config=config, clock=self._clock, notifier=notifier
        )

    def process(self, raw: RawReading | Mapping[str, Any]) -> ReadingEffect:
        if not isinstance(raw, RawReading):
            raw = RawReading.from_mapping(raw)

        value = self._validator.value_of(raw)
        if value is None:
            logger.debug("[INGEST] Invalid value sensor_id=%s value=%r", raw.sensor_id, raw.value)
            return Skip(IngestEffect.SKIP_INVALID_VALUE, "value is not a finite number")

        sensor = get_sensor_config(self._db, raw.sensor_id, for_update=True)
        if sensor is None:
            logger.debug("[INGEST] Unknown sensor_id=%s", raw.sensor_id)
            return Skip(IngestEffect.SKIP_NO_SENSOR, f"sensor {raw.sensor_id} not found")

        sensor_type = self._validator.resolve_type(raw.sensor_type, sensor.sensor_type)
        if sensor_type is None:
            return Skip(
                IngestEffect.SKIP_INVALID_TYPE,
                f"unsupported sensor_type {raw.sensor_type or sensor.sensor_type!r}",
            )

        reading = self._validator.normalize(raw, value, sensor_type, self._clock.now())
        inserted = insert_reading(self._db, reading)
        if not inserted:
            logger.debug(
                "[INGEST] Duplicate reading sensor_id=%s observed_at=%s seq=%s",
                reading.sensor_id, reading.observed_at, reading.sequence_no,
            )

        effect = self._evaluate(sensor, value)
        return effect if inserted else replace(effect, duplicate=True)

    def _evaluate(self, sensor: SensorConfig, value: float) -> ReadingEffect:
        if not sensor.alarm_enabled:
            return Skip(IngestEffect.SKIP_ALARM_OFF)

        bounds = sensor.bounds
        if not bounds.is_configured:
            return Skip(IngestEffect.SKIP_NO_THRESHOLD)

        classification = classify(value, bounds.lower, bounds.upper)
        return self._lifecycle.apply(sensor, value, classification)


def process_reading(
    db: Session | Connection,
    raw: RawReading | Mapping[str, Any],
    config: AlarmConfig | None = None,
    clock: Clock | None = None,
    notifier: Optional[AlarmNotifier] = None,
) -> ReadingEffect:
    """Atajo para procesar una sola lectura."""
    return ReadingProcessor(db, config=config, clock=clock, notifier=notifier).process(raw)
