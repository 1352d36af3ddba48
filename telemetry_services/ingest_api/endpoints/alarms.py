"""Consulta y resolución manual de alarmas."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Connection

from ...common.clock import Clock
from ..alarms import resolve_alarm_manually
from ..alarms.alarm_repository import list_alarms
from ..auth import require_api_key
from ..dependencies import get_clock, get_connection
from ..schemas import AlarmOut, ResolveAlarmIn

router = APIRouter(tags=["alarms"], dependencies=[Depends(require_api_key)])


@router.get("/alarms", response_model=List[AlarmOut])
def get_alarms(
    company_id: Optional[int] = None,
    sensor_id: Optional[int] = None,
    open_only: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    conn: Connection = Depends(get_connection),
):
    alarms = list_alarms(
        conn,
        company_id=company_id,
        sensor_id=sensor_id,
        open_only=open_only,
        limit=limit,
    )
    return [AlarmOut.model_validate(a.to_dict()) for a in alarms]


@router.post("/alarms/{alarm_id}/resolve", response_model=AlarmOut)
def resolve_alarm(
    alarm_id: int,
    body: ResolveAlarmIn,
    conn: Connection = Depends(get_connection),
    clock: Clock = Depends(get_clock),
):
    alarm = resolve_alarm_manually(
        conn,
        alarm_id,
        resolved_by=body.resolved_by,
        company_id=body.company_id,
        clock=clock,
    )
    if alarm is None:
        raise HTTPException(status_code=404, detail="Alarma no encontrada o ya resuelta")
    return AlarmOut.model_validate(alarm.to_dict())
