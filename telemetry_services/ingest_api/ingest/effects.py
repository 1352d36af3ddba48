"""Efectos de procesar una lectura.

Cada caso del flujo de ingesta tiene su propia variante con su payload.
Los SKIP no son errores: son resultados normales del flujo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from .thresholds import Direction


class IngestEffect(str, Enum):
    SKIP_INVALID_VALUE = "SKIP_INVALID_VALUE"
    SKIP_NO_SENSOR = "SKIP_NO_SENSOR"
    SKIP_INVALID_TYPE = "SKIP_INVALID_TYPE"
    SKIP_ALARM_OFF = "SKIP_ALARM_OFF"
    SKIP_NO_THRESHOLD = "SKIP_NO_THRESHOLD"
    COOLDOWN_SKIP = "COOLDOWN_SKIP"
    ALARM_CREATED = "ALARM_CREATED"
    ALARM_AUTORESET = "ALARM_AUTORESET"
    NORMAL = "NORMAL"
    NORMAL_STREAK = "NORMAL_STREAK"
    # Contrato de la API; el flujo actual evalúa también las lecturas duplicadas
    NOOP = "NOOP"


SKIP_EFFECTS = frozenset({
    IngestEffect.SKIP_INVALID_VALUE,
    IngestEffect.SKIP_NO_SENSOR,
    IngestEffect.SKIP_INVALID_TYPE,
    IngestEffect.SKIP_ALARM_OFF,
    IngestEffect.SKIP_NO_THRESHOLD,
})


@dataclass(frozen=True)
class ReadingEffect:
    """Base de todas las variantes.

    ``duplicate`` marca una lectura cuya clave natural ya existía: no se
    vuelve a guardar, pero la alarma se evalúa igual.
    """

    effect: ClassVar[IngestEffect]

    duplicate: bool = field(default=False, kw_only=True)

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"effect": self.effect.value}
        out.update(self.details())
        if self.duplicate:
            out["duplicate"] = True
        return out

    @property
    def persisted(self) -> bool:
        """True si la lectura cruda quedó guardada en este procesamiento."""
        return not self.duplicate


@dataclass(frozen=True)
class Skip(ReadingEffect):
    """Lectura descartada o evaluación de alarma omitida."""

    kind: IngestEffect
    reason: str = ""

    def __post_init__(self) -> None:
        if self.kind not in SKIP_EFFECTS:
            raise ValueError(f"{self.kind} no es un SKIP")

    @property
    def effect(self) -> IngestEffect:  # type: ignore[override]
        return self.kind

    @property
    def persisted(self) -> bool:
        # Valor inválido / sensor inexistente / tipo no soportado: nunca se guarda.
        stored = self.kind in (IngestEffect.SKIP_ALARM_OFF, IngestEffect.SKIP_NO_THRESHOLD)
        return stored and not self.duplicate

    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason} if self.reason else {}


@dataclass(frozen=True)
class AlarmCreated(ReadingEffect):
    effect: ClassVar[IngestEffect] = IngestEffect.ALARM_CREATED

    alarm_id: int
    direction: Direction
    # Notificaciones PENDING creadas en la misma transacción
    notification_ids: Tuple[int, ...] = ()

    @property
    def notifications(self) -> int:
        return len(self.notification_ids)

    def details(self) -> Dict[str, Any]:
        return {
            "alarm_id": self.alarm_id,
            "direction": self.direction.value,
            "notifications": self.notifications,
        }


@dataclass(frozen=True)
class CooldownSkip(ReadingEffect):
    effect: ClassVar[IngestEffect] = IngestEffect.COOLDOWN_SKIP

    recent_seconds: int
    alarm_id: Optional[int] = None

    def details(self) -> Dict[str, Any]:
        return {"recent_seconds": self.recent_seconds, "alarm_id": self.alarm_id}


@dataclass(frozen=True)
class AutoReset(ReadingEffect):
    effect: ClassVar[IngestEffect] = IngestEffect.ALARM_AUTORESET

    alarm_id: int
    normal_streak: int

    def details(self) -> Dict[str, Any]:
        return {"alarm_id": self.alarm_id, "normal_streak": self.normal_streak}


@dataclass(frozen=True)
class Normal(ReadingEffect):
    effect: ClassVar[IngestEffect] = IngestEffect.NORMAL


@dataclass(frozen=True)
class NormalStreak(ReadingEffect):
    effect: ClassVar[IngestEffect] = IngestEffect.NORMAL_STREAK

    normal_streak: int

    def details(self) -> Dict[str, Any]:
        return {"normal_streak": self.normal_streak}

