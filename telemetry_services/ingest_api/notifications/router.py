"""Router de notificaciones.

Resuelve a quién avisar cuando se abre una alarma y crea las filas
``notification`` (PENDING) en la transacción de la alarma. Nunca envía: el
envío ocurre tras el commit, en transacciones propias, para que un reintento
de la transacción de ingesta no repita SMS/emails ya enviados.

Modos de enrutado:
- rules: solo ``notification_rules`` de la empresa
- users: todos los usuarios activos de la empresa (email y/o SMS)
- auto:  reglas si la empresa tiene alguna, si no usuarios
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.clock import Clock, SystemClock
from ...common.config import NotificationConfig
from ..alarms.models import Alarm
from ..ingest.reading_repository import SensorConfig
from . import repository as repo
from .messages import alarm_payload, build_alarm_messages
from .models import Channel, RouteTarget

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Implementa ``AlarmNotifier`` para el gestor de alarmas."""

    def __init__(
        self,
        db: Session | Connection,
        config: NotificationConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._db = db
        self._config = config or NotificationConfig()
        self._clock = clock or SystemClock()

    def resolve_targets(self, company_id: int, sensor_type: str) -> List[RouteTarget]:
        mode = self._config.routing
        if mode in ("rules", "auto"):
            targets = repo.get_rule_targets(self._db, company_id, sensor_type)
            if targets or mode == "rules":
                return _dedupe(targets)
        return _dedupe(repo.get_user_targets(self._db, company_id))

    def on_alarm_created(self, alarm: Alarm, sensor: SensorConfig) -> List[int]:
        targets = self.resolve_targets(alarm.company_id, sensor.sensor_type)
        if not targets:
            logger.warning(
                "[NOTIFY] Sin destinatarios company_id=%s alarm_id=%s",
                alarm.company_id, alarm.id,
            )
            return []

        messages = build_alarm_messages(alarm, sensor)
        base_payload = alarm_payload(alarm)
        now = self._clock.now()

        created_ids: List[int] = []
        for target in targets:
            if target.channel == Channel.EMAIL:
                message = messages.email_subject
                payload = {**base_payload, "body": messages.email_body}
            else:
                message = messages.sms
                payload = dict(base_payload)

            created_ids.append(
                repo.insert_notification(
                    self._db,
                    company_id=alarm.company_id,
                    alarm_id=alarm.id,
                    channel=target.channel,
                    target_id=target.target_id,
                    message=message,
                    payload=payload,
                    created_at=now,
                )
            )

        logger.info(
            "[NOTIFY] %d notificaciones creadas alarm_id=%s mode=%s",
            len(created_ids), alarm.id, self._config.routing,
        )

        return created_ids


def _dedupe(targets: List[RouteTarget]) -> List[RouteTarget]:
    seen = set()
    out: List[RouteTarget] = []
    for t in targets:
        if t in seen:
            continue
        seen.add(t)
        out.append(t)
    return out
