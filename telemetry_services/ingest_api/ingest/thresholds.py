"""Evaluación de umbrales por sensor.

Clasificación pura de un valor contra los límites configurados. Las
comparaciones son estrictas: un valor igual al límite es NORMAL.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Classification(str, Enum):
    """Resultado de comparar un valor con los límites del sensor."""

    HIGH = "HIGH"
    LOW = "LOW"
    NORMAL = "NORMAL"


class Direction(str, Enum):
    """Dirección de una alarma (qué límite se rompió)."""

    HIGH = "HIGH"
    LOW = "LOW"

    @classmethod
    def from_classification(cls, c: Classification) -> "Direction":
        if c == Classification.NORMAL:
            raise ValueError("NORMAL no tiene dirección de alarma")
        return cls(c.value)


def _as_bound(v: Any) -> Optional[float]:
    if v is None:
        return None
    f = float(v)
    return f if math.isfinite(f) else None


@dataclass(frozen=True)
class ThresholdBounds:
    """Límites inferior/superior; cualquiera puede faltar."""

    lower: Optional[float] = None
    upper: Optional[float] = None

    @classmethod
    def of(cls, lower: Any, upper: Any) -> "ThresholdBounds":
        return cls(lower=_as_bound(lower), upper=_as_bound(upper))

    @property
    def is_configured(self) -> bool:
        return self.lower is not None or self.upper is not None

    def classify(self, value: float) -> Classification:
        return classify(value, self.lower, self.upper)

    def to_json(self) -> str:
        return json.dumps({"lower": self.lower, "upper": self.upper})

    @classmethod
    def from_json(cls, raw: str | None) -> "ThresholdBounds":
        if not raw:
            return cls()
        data = json.loads(raw)
        return cls.of(data.get("lower"), data.get("upper"))


def classify(value: float, lower: Optional[float], upper: Optional[float]) -> Classification:
    """Clasifica ``value`` como HIGH / LOW / NORMAL.

    HIGH se evalúa primero: con una config mal formada (lower >= upper) un
    valor que rompe ambos límites siempre sale HIGH.
    """
    if upper is not None and value > upper:
        return Classification.HIGH
    if lower is not None and value < lower:
        return Classification.LOW
    return Classification.NORMAL
