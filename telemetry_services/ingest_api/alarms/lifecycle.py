"""Ciclo de vida de alarmas por sensor.

Máquina de estados por sensor: NO_ALARM / ALARM_OPEN(direction).

Transiciones (por cada lectura clasificada):
- NO_ALARM + HIGH|LOW                      → nueva alarma (ALARM_CREATED)
- ALARM_OPEN(d) + d, dentro del cooldown   → COOLDOWN_SKIP (racha a 0)
- ALARM_OPEN(d) + d, cooldown cumplido     → nueva alarma; la anterior sigue abierta
                                              salvo ``supersede_open``
- ALARM_OPEN(d) + dirección opuesta        → nueva alarma, sin cooldown
- NORMAL sin racha                         → NORMAL
- NORMAL con racha                         → NORMAL_STREAK, o ALARM_AUTORESET al
                                              llegar a ``auto_resolve_n`` con alarma abierta

Las notificaciones se crean en la MISMA transacción que la alarma; el envío
va después del commit (ver ``services.dispatch_notifications``).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.clock import Clock, SystemClock
from ...common.config import AlarmConfig
from ..ingest.effects import (
    AlarmCreated,
    AutoReset,
    CooldownSkip,
    Normal,
    NormalStreak,
    ReadingEffect,
)
from ..ingest.reading_repository import SensorConfig
from ..ingest.thresholds import Classification, Direction
from . import alarm_repository as repo
from .models import Alarm
from .state_repository import StateRepository

logger = logging.getLogger(__name__)


class AlarmNotifier(Protocol):
    """Quien recibe las alarmas nuevas (router de notificaciones)."""

    def on_alarm_created(self, alarm: Alarm, sensor: SensorConfig) -> List[int]:
        """Crea notificaciones PENDING. Devuelve sus ids (se despachan tras el commit)."""
        ...


class AlarmLifecycleManager:
    """Gestor del ciclo de vida de alarmas.

    ÚNICO PUNTO DE DECISIÓN para abrir, suprimir y auto-resolver alarmas.
    Debe usarse dentro de la transacción de la lectura.
    """

    def __init__(
        self,
        db: Session | Connection,
        config: AlarmConfig | None = None,
        clock: Clock | None = None,
        notifier: Optional[AlarmNotifier] = None,
    ) -> None:
        self._db = db
        self._config = config or AlarmConfig()
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._state = StateRepository(db)

    @property
    def config(self) -> AlarmConfig:
        return self._config

    def apply(
        self,
        sensor: SensorConfig,
        value: float,
        classification: Classification,
    ) -> ReadingEffect:
        """Aplica una lectura ya clasificada al estado de alarmas del sensor."""
        now = self._clock.now()
        track = self._config.track_streak

        if track:
            self._state.ensure(sensor.sensor_id)

        open_alarm = repo.get_latest_open_alarm(self._db, sensor.sensor_id)

        if classification == Classification.NORMAL:
            return self._on_normal(sensor, value, open_alarm, now)

        direction = Direction.from_classification(classification)

        if open_alarm is not None and open_alarm.direction == direction:
            recent = int((now - open_alarm.created_at).total_seconds())
            if recent < self._config.cooldown_seconds:
                if track:
                    self._state.reset_streak(sensor.sensor_id, value, now)
                logger.debug(
                    "[ALARM] Cooldown sensor_id=%s alarm_id=%s recent=%ss",
                    sensor.sensor_id, open_alarm.id, recent,
                )
                return CooldownSkip(recent_seconds=recent, alarm_id=open_alarm.id)

            if self._config.supersede_open:
                repo.resolve_alarm(self._db, open_alarm.id, now)
                logger.info(
                    "[ALARM] Superseded alarm_id=%s sensor_id=%s",
                    open_alarm.id, sensor.sensor_id,
                )

        return self._open_alarm(sensor, value, direction, now)

    def _open_alarm(
        self,
        sensor: SensorConfig,
        value: float,
        direction: Direction,
        now: datetime,
    ) -> AlarmCreated:
        bounds = sensor.bounds
        alarm_id = repo.insert_alarm(
            self._db,
            company_id=sensor.company_id,
            sensor_id=sensor.sensor_id,
            direction=direction,
            value=value,
            bounds=bounds,
            created_at=now,
        )
        if self._config.track_streak:
            self._state.reset_streak(sensor.sensor_id, value, now, alarm_id=alarm_id)

        logger.info(
            "[ALARM] Created alarm_id=%s sensor_id=%s direction=%s value=%s bounds=(%s, %s)",
            alarm_id, sensor.sensor_id, direction.value, value, bounds.lower, bounds.upper,
        )

        created: List[int] = []
        if self._notifier is not None:
            alarm = Alarm(
                id=alarm_id,
                company_id=sensor.company_id,
                sensor_id=sensor.sensor_id,
                direction=direction,
                value=value,
                threshold_snapshot=bounds,
                created_at=now,
            )
            created = self._notifier.on_alarm_created(alarm, sensor)

        return AlarmCreated(alarm_id=alarm_id, direction=direction, notification_ids=tuple(created))

    def _on_normal(
        self,
        sensor: SensorConfig,
        value: float,
        open_alarm: Optional[Alarm],
        now: datetime,
    ) -> ReadingEffect:
        if not self._config.track_streak:
            return Normal()

        streak = self._state.increment_streak(sensor.sensor_id, value, now)

        if open_alarm is not None and streak >= self._config.auto_resolve_n:
            repo.resolve_alarm(self._db, open_alarm.id, now, resolved_by=None)
            logger.info(
                "[ALARM] Auto-resolved alarm_id=%s sensor_id=%s streak=%s",
                open_alarm.id, sensor.sensor_id, streak,
            )
            return AutoReset(alarm_id=open_alarm.id, normal_streak=streak)

        return NormalStreak(normal_streak=streak)


def resolve_alarm_manually(
    db: Session | Connection,
    alarm_id: int,
    resolved_by: int,
    company_id: Optional[int] = None,
    clock: Clock | None = None,
) -> Optional[Alarm]:
    """Resolución manual (API). Devuelve la alarma actualizada o None."""
    now = (clock or SystemClock()).now()
    if not repo.resolve_alarm(db, alarm_id, now, resolved_by=resolved_by, company_id=company_id):
        return None
    logger.info("[ALARM] Manually resolved alarm_id=%s by user_id=%s", alarm_id, resolved_by)
    return repo.get_alarm(db, alarm_id)
