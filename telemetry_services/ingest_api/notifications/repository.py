"""Repositorio de notificaciones, reglas y destinatarios."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.db import with_timestamps
from .models import Channel, Notification, NotificationStatus, RouteTarget

logger = logging.getLogger(__name__)


def _load_payload(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("[NOTIFY] Payload no es JSON, se ignora")
        return {}
    return data if isinstance(data, dict) else {"value": data}


def get_rule_targets(
    db: Session | Connection,
    company_id: int,
    sensor_type: str,
) -> List[RouteTarget]:
    """Reglas estáticas por empresa (y tipo de sensor, NULL = todos)."""
    rows = db.execute(
        text(
            """
            SELECT channel, target_id
              FROM notification_rules
             WHERE company_id = :company_id
               AND (sensor_type IS NULL OR sensor_type = :sensor_type)
             ORDER BY id ASC
            """
        ),
        {"company_id": company_id, "sensor_type": sensor_type},
    ).fetchall()

    targets: List[RouteTarget] = []
    for r in rows:
        try:
            targets.append(RouteTarget(channel=Channel(str(r.channel).lower()), target_id=int(r.target_id)))
        except ValueError:
            logger.warning("[NOTIFY] Regla con canal desconocido ignorada: %s", r.channel)
    return targets


def get_user_targets(db: Session | Connection, company_id: int) -> List[RouteTarget]:
    """Todos los usuarios activos: email si tienen email, sms si tienen teléfono."""
    rows = db.execute(
        text(
            """
            SELECT id, email, phone
              FROM users
             WHERE company_id = :company_id
               AND is_active = :active
               AND deleted_at IS NULL
             ORDER BY id ASC
            """
        ),
        {"company_id": company_id, "active": True},
    ).fetchall()

    targets: List[RouteTarget] = []
    for r in rows:
        if r.email:
            targets.append(RouteTarget(channel=Channel.EMAIL, target_id=int(r.id)))
        if r.phone:
            targets.append(RouteTarget(channel=Channel.SMS, target_id=int(r.id)))
    return targets


def insert_notification(
    db: Session | Connection,
    company_id: int,
    alarm_id: int,
    channel: Channel,
    target_id: int,
    message: str,
    payload: Dict[str, Any],
    created_at: datetime,
) -> int:
    """Inserta una notificación PENDING."""
    notification_id = db.execute(
        with_timestamps(
            text(
                """
                INSERT INTO notification
                  (company_id, alarm_id, channel, target_id, status, message, payload, created_at)
                VALUES
                  (:company_id, :alarm_id, :channel, :target_id, :status, :message, :payload, :created_at)
                RETURNING id
                """
            ),
            "created_at",
        ),
        {
            "company_id": company_id,
            "alarm_id": alarm_id,
            "channel": channel.value,
            "target_id": target_id,
            "status": NotificationStatus.PENDING.value,
            "message": message,
            "payload": json.dumps(payload, ensure_ascii=False),
            "created_at": created_at,
        },
    ).scalar_one()
    return int(notification_id)


def get_notification(db: Session | Connection, notification_id: int) -> Optional[Notification]:
    """Notificación + contacto del usuario destino."""
    row = db.execute(
        text(
            """
            SELECT nt.id, nt.company_id, nt.alarm_id, nt.channel, nt.target_id,
                   nt.status, nt.message, nt.payload, nt.created_at, nt.sent_at,
                   u.email, u.phone
              FROM notification nt
              LEFT JOIN users u ON u.id = nt.target_id
             WHERE nt.id = :id
            """
        ).columns(created_at=DateTime, sent_at=DateTime),
        {"id": notification_id},
    ).fetchone()

    if not row:
        return None

    return Notification(
        id=int(row.id),
        company_id=int(row.company_id),
        alarm_id=int(row.alarm_id),
        channel=str(row.channel),
        target_id=int(row.target_id),
        status=NotificationStatus(row.status),
        message=row.message,
        payload=_load_payload(row.payload),
        created_at=row.created_at,
        sent_at=row.sent_at,
        email=row.email,
        phone=row.phone,
    )


def mark_result(
    db: Session | Connection,
    notification_id: int,
    status: NotificationStatus,
    sent_at: datetime,
    payload: Dict[str, Any],
) -> None:
    """PENDING → SENT | FAILED con el resultado del transporte en ``payload``."""
    db.execute(
        with_timestamps(
            text(
                """
                UPDATE notification
                   SET status = :status,
                       sent_at = :sent_at,
                       payload = :payload
                 WHERE id = :id
                """
            ),
            "sent_at",
        ),
        {
            "id": notification_id,
            "status": status.value,
            "sent_at": sent_at,
            "payload": json.dumps(payload, ensure_ascii=False, default=str),
        },
    )


def reset_to_pending(db: Session | Connection, notification_id: int) -> bool:
    """FAILED/PENDING → PENDING (retry manual). Nunca toca las SENT."""
    result = db.execute(
        text(
            """
            UPDATE notification
               SET status = :pending,
                   sent_at = NULL
             WHERE id = :id
               AND status <> :sent
            """
        ),
        {
            "id": notification_id,
            "pending": NotificationStatus.PENDING.value,
            "sent": NotificationStatus.SENT.value,
        },
    )
    return (result.rowcount or 0) > 0


def list_pending_ids(db: Session | Connection, limit: int = 100) -> List[int]:
    rows = db.execute(
        text(
            """
            SELECT id FROM notification
             WHERE status = :pending
             ORDER BY id ASC
             LIMIT :limit
            """
        ),
        {"pending": NotificationStatus.PENDING.value, "limit": limit},
    ).fetchall()
    return [int(r[0]) for r in rows]
