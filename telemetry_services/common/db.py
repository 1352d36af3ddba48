from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy import DateTime, bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import TextClause

from .config import get_settings


logger = logging.getLogger(__name__)

# Engine singleton (se crea al primer uso, nunca al importar)
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine

    if _engine is not None:
        return _engine

    settings = get_settings()
    url = make_url(settings.database_url)

    # Log de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Crear engine driver=%s host=%s port=%s db=%s user=%s",
        url.drivername,
        url.host,
        url.port,
        url.database,
        url.username,
    )

    _engine = create_engine(url, pool_pre_ping=True, pool_recycle=300, future=True)

    # Test de conexión: deja en logs si el servicio realmente llega a la BD
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return _engine


def dialect_name(db: Session | Connection) -> str:
    if isinstance(db, Session):
        return db.get_bind().dialect.name
    return db.dialect.name


def with_timestamps(stmt: TextClause, *names: str) -> TextClause:
    """Tipa como DateTime los parámetros indicados de un ``text()``.

    SQLite guarda los timestamps como texto; tipar el bind hace que el
    formato sea el mismo que lee ``.columns(x=DateTime)``.
    """
    return stmt.bindparams(*(bindparam(n, type_=DateTime) for n in names))
