"""Despacho y reintento manual de notificaciones."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Connection

from ...common.clock import Clock
from ...common.config import Settings
from ..auth import require_api_key
from ..dependencies import get_app_settings, get_clock, get_connection, get_transports
from ..notifications import DispatchResult
from ..schemas import DispatchOut
from ..services import Transports, build_dispatcher

router = APIRouter(tags=["notifications"], dependencies=[Depends(require_api_key)])


def _to_out(result: DispatchResult) -> DispatchOut:
    if result.reason == "NOT_FOUND":
        raise HTTPException(status_code=404, detail="Notificación no encontrada")
    return DispatchOut(**result.to_dict())


@router.post("/notifications/{notification_id}/dispatch", response_model=DispatchOut)
def dispatch_notification(
    notification_id: int,
    conn: Connection = Depends(get_connection),
    settings: Settings = Depends(get_app_settings),
    transports: Transports = Depends(get_transports),
    clock: Clock = Depends(get_clock),
):
    dispatcher = build_dispatcher(conn, settings, transports=transports, clock=clock)
    return _to_out(dispatcher.dispatch(notification_id))


@router.post("/notifications/{notification_id}/retry", response_model=DispatchOut)
def retry_notification(
    notification_id: int,
    conn: Connection = Depends(get_connection),
    settings: Settings = Depends(get_app_settings),
    transports: Transports = Depends(get_transports),
    clock: Clock = Depends(get_clock),
):
    dispatcher = build_dispatcher(conn, settings, transports=transports, clock=clock)
    return _to_out(dispatcher.retry(notification_id))
