from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, text
from sqlalchemy.engine import Connection

from ..common.db import with_timestamps


@dataclass(frozen=True)
class SensorInfo:
    sensor_id: int
    company_id: int
    name: Optional[str]
    sensor_type: str
    lower_bound: Optional[float]
    upper_bound: Optional[float]


def get_sensor_info(
    conn: Connection,
    sensor_id: int,
    company_id: Optional[int] = None,
) -> Optional[SensorInfo]:
    """Sensor + umbrales; con ``company_id`` solo si pertenece a esa empresa."""
    sql = """
        SELECT s.id, s.company_id, s.name, s.sensor_type, t.lower_bound, t.upper_bound
          FROM sensor s
          LEFT JOIN thresholds t ON t.sensor_id = s.id
         WHERE s.id = :sensor_id
           AND s.deleted_at IS NULL
    """
    params: Dict[str, Any] = {"sensor_id": sensor_id}
    if company_id is not None:
        sql += " AND s.company_id = :company_id"
        params["company_id"] = company_id

    row = conn.execute(text(sql), params).fetchone()
    if not row:
        return None

    return SensorInfo(
        sensor_id=int(row.id),
        company_id=int(row.company_id),
        name=row.name,
        sensor_type=str(row.sensor_type or ""),
        lower_bound=float(row.lower_bound) if row.lower_bound is not None else None,
        upper_bound=float(row.upper_bound) if row.upper_bound is not None else None,
    )


def load_readings(
    conn: Connection,
    sensor_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Lecturas del sensor en [start, end], ordenadas por tiempo.

    Devuelve filas ``{"observed_at", "value"}`` listas para anomalía/pronóstico.
    """
    sql = "SELECT observed_at, value FROM sensor_data WHERE sensor_id = :sensor_id"
    params: Dict[str, Any] = {"sensor_id": sensor_id}
    names = []
    if start is not None:
        sql += " AND observed_at >= :start"
        params["start"] = start
        names.append("start")
    if end is not None:
        sql += " AND observed_at <= :end"
        params["end"] = end
        names.append("end")
    sql += " ORDER BY observed_at ASC, sequence_no ASC"

    stmt = with_timestamps(text(sql), *names).columns(observed_at=DateTime)
    rows = conn.execute(stmt, params).fetchall()
    return [{"observed_at": r.observed_at, "value": float(r.value)} for r in rows]


def load_recent_readings(conn: Connection, sensor_id: int, days: float) -> List[Dict[str, Any]]:
    """Lecturas de los últimos ``days`` días contados desde la última lectura.

    Acota la carga al mismo recorte que aplica el pronóstico (0 = todo).
    """
    latest = conn.execute(
        text("SELECT MAX(observed_at) AS latest FROM sensor_data WHERE sensor_id = :sensor_id")
        .columns(latest=DateTime),
        {"sensor_id": sensor_id},
    ).scalar()
    if latest is None:
        return []
    start = latest - timedelta(days=days) if days and days > 0 else None
    return load_readings(conn, sensor_id, start=start)
