"""Endpoints de analítica: serie con anomalías, pronóstico e informe."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Connection

from ...analytics import build_sensor_report, detect_anomalies, forecast, preset_forecast_config
from ...analytics.series_repository import SensorInfo, get_sensor_info, load_readings, load_recent_readings
from ...common.clock import Clock, to_naive_utc
from ..auth import require_api_key
from ..dependencies import get_clock, get_connection
from ..schemas import ForecastPointOut, SeriesPointOut

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_api_key)],
)
logger = logging.getLogger(__name__)


def _require_sensor(conn: Connection, sensor_id: int, company_id: Optional[int]) -> SensorInfo:
    sensor = get_sensor_info(conn, sensor_id, company_id=company_id)
    if sensor is None:
        raise HTTPException(status_code=404, detail="Sensor no encontrado")
    return sensor


@router.get("/sensor-series", response_model=List[SeriesPointOut])
def sensor_series(
    sensor_id: int = Query(..., ge=1),
    start: datetime = Query(..., alias="from"),
    end: datetime = Query(..., alias="to"),
    company_id: Optional[int] = None,
    conn: Connection = Depends(get_connection),
):
    """Lecturas reales del rango + marca de anomalía por z-score."""
    _require_sensor(conn, sensor_id, company_id)
    rows = load_readings(conn, sensor_id, to_naive_utc(start), to_naive_utc(end))
    return [SeriesPointOut(**r) for r in detect_anomalies(rows)]


@router.get("/sensor-forecast", response_model=List[ForecastPointOut])
def sensor_forecast(
    sensor_id: int = Query(..., ge=1),
    horizon_minutes: int = Query(default=60, ge=1, le=24 * 60),
    company_id: Optional[int] = None,
    conn: Connection = Depends(get_connection),
):
    """Pronóstico por patrones sobre el histórico reciente del sensor."""
    _require_sensor(conn, sensor_id, company_id)
    cfg = preset_forecast_config(horizon_minutes)
    rows = load_recent_readings(conn, sensor_id, cfg.history_days)
    points = forecast(rows, cfg)
    logger.info("[FORECAST] sensor_id=%s rows=%d points=%d", sensor_id, len(rows), len(points))
    return [ForecastPointOut(**p.to_dict()) for p in points]


@router.get("/sensor-report")
def sensor_report(
    sensor_id: int = Query(..., ge=1),
    hours: int = Query(default=24, ge=1, le=24 * 31),
    company_id: Optional[int] = None,
    conn: Connection = Depends(get_connection),
    clock: Clock = Depends(get_clock),
) -> Dict[str, Any]:
    sensor = _require_sensor(conn, sensor_id, company_id)
    now = clock.now()
    rows = load_readings(conn, sensor_id, now - timedelta(hours=hours), now)
    return build_sensor_report(sensor, rows, hours, now)
