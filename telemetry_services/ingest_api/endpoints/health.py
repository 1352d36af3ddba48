"""Liveness y readiness del servicio."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..dependencies import get_db_engine

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
def health():
    """Liveness: ok mientras el proceso responda."""
    return {"status": "ok"}


@router.get("/ready")
def ready(engine: Engine = Depends(get_db_engine)):
    """Readiness: comprueba que la BD responde."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        # No exponer detalles del error al cliente
        logger.exception("[HEALTH] Database readiness check failed")
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}
