"""Repositorio de alarmas - operaciones de persistencia."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.db import with_timestamps
from ..ingest.thresholds import Direction, ThresholdBounds
from .models import Alarm

logger = logging.getLogger(__name__)

_ALARM_COLUMNS = """
    id, company_id, sensor_id, direction, value, threshold_snapshot,
    created_at, resolved_at, resolved_by
"""


def _row_to_alarm(row) -> Alarm:
    return Alarm(
        id=int(row.id),
        company_id=int(row.company_id),
        sensor_id=int(row.sensor_id),
        direction=Direction(row.direction),
        value=float(row.value),
        threshold_snapshot=ThresholdBounds.from_json(row.threshold_snapshot),
        created_at=row.created_at,
        resolved_at=row.resolved_at,
        resolved_by=int(row.resolved_by) if row.resolved_by is not None else None,
    )


def _select(where: str) -> str:
    return f"SELECT {_ALARM_COLUMNS} FROM alarm WHERE {where}"


def get_alarm(db: Session | Connection, alarm_id: int) -> Optional[Alarm]:
    row = db.execute(
        text(_select("id = :id")).columns(created_at=DateTime, resolved_at=DateTime),
        {"id": alarm_id},
    ).fetchone()
    return _row_to_alarm(row) if row else None


def get_latest_open_alarm(db: Session | Connection, sensor_id: int) -> Optional[Alarm]:
    """Alarma abierta más reciente del sensor (por id)."""
    row = db.execute(
        text(
            _select("sensor_id = :sensor_id AND resolved_at IS NULL")
            + " ORDER BY id DESC LIMIT 1"
        ).columns(created_at=DateTime, resolved_at=DateTime),
        {"sensor_id": sensor_id},
    ).fetchone()
    return _row_to_alarm(row) if row else None


def list_alarms(
    db: Session | Connection,
    company_id: Optional[int] = None,
    sensor_id: Optional[int] = None,
    open_only: bool = False,
    limit: int = 100,
) -> List[Alarm]:
    clauses = ["1 = 1"]
    params: dict = {"limit": limit}
    if company_id is not None:
        clauses.append("company_id = :company_id")
        params["company_id"] = company_id
    if sensor_id is not None:
        clauses.append("sensor_id = :sensor_id")
        params["sensor_id"] = sensor_id
    if open_only:
        clauses.append("resolved_at IS NULL")

    rows = db.execute(
        text(
            _select(" AND ".join(clauses)) + " ORDER BY created_at DESC, id DESC LIMIT :limit"
        ).columns(created_at=DateTime, resolved_at=DateTime),
        params,
    ).fetchall()
    return [_row_to_alarm(r) for r in rows]


def insert_alarm(
    db: Session | Connection,
    company_id: int,
    sensor_id: int,
    direction: Direction,
    value: float,
    bounds: ThresholdBounds,
    created_at: datetime,
) -> int:
    """Crea una alarma abierta con snapshot de los límites vigentes."""
    alarm_id = db.execute(
        with_timestamps(
            text(
                """
                INSERT INTO alarm
                  (company_id, sensor_id, direction, value, threshold_snapshot, created_at)
                VALUES
                  (:company_id, :sensor_id, :direction, :value, :snapshot, :created_at)
                RETURNING id
                """
            ),
            "created_at",
        ),
        {
            "company_id": company_id,
            "sensor_id": sensor_id,
            "direction": direction.value,
            "value": value,
            "snapshot": bounds.to_json(),
            "created_at": created_at,
        },
    ).scalar_one()
    return int(alarm_id)


def resolve_alarm(
    db: Session | Connection,
    alarm_id: int,
    resolved_at: datetime,
    resolved_by: Optional[int] = None,
    company_id: Optional[int] = None,
) -> bool:
    """Marca la alarma como resuelta si sigue abierta.

    Returns:
        True si se resolvió, False si no existe / ya estaba resuelta / es de otra empresa.
    """
    scope = " AND company_id = :company_id" if company_id is not None else ""
    result = db.execute(
        with_timestamps(
            text(
                f"""
                UPDATE alarm
                   SET resolved_at = :resolved_at,
                       resolved_by = :resolved_by
                 WHERE id = :id
                   AND resolved_at IS NULL
                   {scope}
                """
            ),
            "resolved_at",
        ),
        {
            "id": alarm_id,
            "resolved_at": resolved_at,
            "resolved_by": resolved_by,
            "company_id": company_id,
        },
    )
    return (result.rowcount or 0) > 0
