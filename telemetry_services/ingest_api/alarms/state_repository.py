"""Acceso a BD para ``sensor_state`` (racha de lecturas normales)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.db import with_timestamps
from .models import SensorRuntimeState


class StateRepository:
    """Operaciones sobre la fila de estado de cada sensor.

    La fila se crea de forma perezosa en la primera evaluación.
    """

    def __init__(self, db: Session | Connection) -> None:
        self._db = db

    def ensure(self, sensor_id: int) -> None:
        self._db.execute(
            text(
                """
                INSERT INTO sensor_state (sensor_id, normal_streak)
                VALUES (:sensor_id, 0)
                ON CONFLICT (sensor_id) DO NOTHING
                """
            ),
            {"sensor_id": sensor_id},
        )

    def get(self, sensor_id: int) -> Optional[SensorRuntimeState]:
        row = self._db.execute(
            text(
                """
                SELECT sensor_id, normal_streak, last_alarm_id, last_value, updated_at
                  FROM sensor_state
                 WHERE sensor_id = :sensor_id
                """
            ).columns(updated_at=DateTime),
            {"sensor_id": sensor_id},
        ).fetchone()
        if not row:
            return None
        return SensorRuntimeState(
            sensor_id=int(row.sensor_id),
            normal_streak=int(row.normal_streak or 0),
            last_alarm_id=int(row.last_alarm_id) if row.last_alarm_id is not None else None,
            last_value=float(row.last_value) if row.last_value is not None else None,
            updated_at=row.updated_at,
        )

    def reset_streak(
        self,
        sensor_id: int,
        value: float,
        now: datetime,
        alarm_id: Optional[int] = None,
    ) -> None:
        """Lectura fuera de rango: racha a 0 (y última alarma si se creó una)."""
        set_alarm = ", last_alarm_id = :alarm_id" if alarm_id is not None else ""
        self._db.execute(
            with_timestamps(
                text(
                    f"""
                    UPDATE sensor_state
                       SET normal_streak = 0,
                           last_value = :value,
                           updated_at = :now
                           {set_alarm}
                     WHERE sensor_id = :sensor_id
                    """
                ),
                "now",
            ),
            {"sensor_id": sensor_id, "value": value, "now": now, "alarm_id": alarm_id},
        )

    def increment_streak(self, sensor_id: int, value: float, now: datetime) -> int:
        """Lectura normal: racha + 1. Devuelve la racha resultante."""
        self._db.execute(
            with_timestamps(
                text(
                    """
                    UPDATE sensor_state
                       SET normal_streak = normal_streak + 1,
                           last_value = :value,
                           updated_at = :now
                     WHERE sensor_id = :sensor_id
                    """
                ),
                "now",
            ),
            {"sensor_id": sensor_id, "value": value, "now": now},
        )
        state = self.get(sensor_id)
        return state.normal_streak if state else 0
