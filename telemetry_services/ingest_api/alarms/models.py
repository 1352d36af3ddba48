"""Modelos de alarmas y estado de runtime del sensor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..ingest.thresholds import Direction, ThresholdBounds


@dataclass(frozen=True)
class Alarm:
    """Alarma por ruptura de umbral. Abierta mientras ``resolved_at`` es None."""

    id: int
    company_id: int
    sensor_id: int
    direction: Direction
    value: float
    threshold_snapshot: ThresholdBounds
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sensor_id": self.sensor_id,
            "direction": self.direction.value,
            "value": self.value,
            "threshold_snapshot": {
                "lower": self.threshold_snapshot.lower,
                "upper": self.threshold_snapshot.upper,
            },
            "created_at": self.created_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
        }


@dataclass(frozen=True)
class SensorRuntimeState:
    """Fila de ``sensor_state``: racha de lecturas normales y último valor."""

    sensor_id: int
    normal_streak: int
    last_alarm_id: Optional[int]
    last_value: Optional[float]
    updated_at: Optional[datetime]
