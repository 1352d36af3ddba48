"""Validador de lecturas de entrada."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from ...common.clock import to_naive_utc

logger = logging.getLogger(__name__)

ALLOWED_SENSOR_TYPES = frozenset({"temperature", "humidity"})


@dataclass(frozen=True)
class RawReading:
    """Lectura tal como llega del CRUD/API (sin validar)."""

    sensor_id: int
    value: Any
    sensor_type: Optional[str] = None
    sequence_no: int = 1
    aux_sum: Optional[float] = None
    aux_count: Optional[int] = None
    observed_at: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "RawReading":
        """Acepta los nombres nuevos y los del formato legacy (data_value, data_no...)."""
        observed_at = row.get("observed_at", row.get("upload_at"))
        if isinstance(observed_at, str):
            observed_at = parse_timestamp(observed_at)
        seq = row.get("sequence_no", row.get("data_no"))
        return cls(
            sensor_id=int(row["sensor_id"]),
            value=row.get("value", row.get("data_value")),
            sensor_type=row.get("sensor_type"),
            sequence_no=int(seq) if seq is not None else 1,
            aux_sum=row.get("aux_sum", row.get("data_sum")),
            aux_count=row.get("aux_count", row.get("data_num")),
            observed_at=observed_at,
        )


@dataclass(frozen=True)
class Reading:
    """Lectura validada y normalizada, lista para persistir."""

    sensor_id: int
    sensor_type: str
    sequence_no: int
    value: float
    observed_at: datetime
    aux_sum: Optional[float] = None
    aux_count: Optional[int] = None


def parse_timestamp(raw: str) -> Optional[datetime]:
    try:
        return to_naive_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00")))
    except ValueError:
        logger.warning("[VALIDATOR] Timestamp inválido: %r", raw)
        return None


def parse_value(raw: Any) -> Optional[float]:
    """Convierte a float finito; None si no es posible."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        v = float(raw)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


class ReadingValidator:
    """Valida y normaliza lecturas antes de persistirlas.

    Responsabilidades:
    - Rechazar valores no numéricos o no finitos
    - Resolver el tipo de sensor (request > tipo guardado) en minúsculas
    - Restringir el tipo a los soportados
    """

    def __init__(self, allowed_types: frozenset[str] = ALLOWED_SENSOR_TYPES) -> None:
        self._allowed = allowed_types

    def value_of(self, raw: RawReading) -> Optional[float]:
        return parse_value(raw.value)

    def resolve_type(self, requested: Optional[str], stored: Optional[str]) -> Optional[str]:
        final = str(requested if requested is not None else (stored or "")).strip().lower()
        return final if final in self._allowed else None

    def normalize(
        self,
        raw: RawReading,
        value: float,
        sensor_type: str,
        now: datetime,
    ) -> Reading:
        observed_at = to_naive_utc(raw.observed_at) if raw.observed_at else now
        return Reading(
            sensor_id=raw.sensor_id,
            sensor_type=sensor_type,
            sequence_no=raw.sequence_no,
            value=value,
            observed_at=observed_at,
            aux_sum=parse_value(raw.aux_sum),
            aux_count=int(raw.aux_count) if raw.aux_count is not None else None,
        )
