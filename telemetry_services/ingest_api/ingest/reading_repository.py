"""Repositorio de lecturas crudas y configuración de sensores."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.db import dialect_name, with_timestamps
from .thresholds import ThresholdBounds
from .validation import Reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorConfig:
    """Configuración del sensor (propiedad del CRUD, solo lectura aquí)."""

    sensor_id: int
    company_id: int
    sensor_type: str
    alarm_enabled: bool
    lower_bound: Optional[float]
    upper_bound: Optional[float]
    name: Optional[str] = None
    area_name: Optional[str] = None

    @property
    def bounds(self) -> ThresholdBounds:
        return ThresholdBounds.of(self.lower_bound, self.upper_bound)


def get_sensor_config(
    db: Session | Connection,
    sensor_id: int,
    for_update: bool = False,
) -> Optional[SensorConfig]:
    """Sensor + umbrales. ``for_update`` bloquea la fila del sensor (PostgreSQL).

    El bloqueo serializa lecturas concurrentes del MISMO sensor dentro de la
    transacción; sensores distintos no se bloquean entre sí.
    """
    lock = ""
    if for_update and dialect_name(db) == "postgresql":
        lock = "FOR UPDATE OF s"

    row = db.execute(
        text(
            f"""
            SELECT s.id, s.company_id, s.sensor_type, s.is_alarm, s.name, s.area_name,
                   t.lower_bound, t.upper_bound
              FROM sensor s
              LEFT JOIN thresholds t ON t.sensor_id = s.id
             WHERE s.id = :sensor_id
               AND s.deleted_at IS NULL
             {lock}
            """
        ),
        {"sensor_id": sensor_id},
    ).fetchone()

    if not row:
        return None

    return SensorConfig(
        sensor_id=int(row.id),
        company_id=int(row.company_id),
        sensor_type=str(row.sensor_type or ""),
        alarm_enabled=bool(row.is_alarm),
        lower_bound=float(row.lower_bound) if row.lower_bound is not None else None,
        upper_bound=float(row.upper_bound) if row.upper_bound is not None else None,
        name=row.name,
        area_name=row.area_name,
    )


def insert_reading(db: Session | Connection, reading: Reading) -> bool:
    """Inserta la lectura cruda. Duplicados (clave natural) se ignoran.

    Returns:
        True si se insertó, False si ya existía.
    """
    result = db.execute(
        with_timestamps(
            text(
                """
                INSERT INTO sensor_data
                  (sensor_id, sensor_type, observed_at, sequence_no, value, aux_sum, aux_count)
                VALUES
                  (:sensor_id, :sensor_type, :observed_at, :sequence_no, :value, :aux_sum, :aux_count)
                ON CONFLICT DO NOTHING
                """
            ),
            "observed_at",
        ),
        {
            "sensor_id": reading.sensor_id,
            "sensor_type": reading.sensor_type,
            "observed_at": reading.observed_at,
            "sequence_no": reading.sequence_no,
            "value": reading.value,
            "aux_sum": reading.aux_sum,
            "aux_count": reading.aux_count,
        },
    )
    inserted = (result.rowcount or 0) > 0
    if not inserted:
        logger.debug(
            "[INGEST] Duplicate reading ignored sensor_id=%s observed_at=%s seq=%s",
            reading.sensor_id, reading.observed_at, reading.sequence_no,
        )
    return inserted
