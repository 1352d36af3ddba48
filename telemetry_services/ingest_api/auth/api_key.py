"""Autenticación por API Key.

SECURITY: En producción, INGEST_API_KEY debe estar configurado.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException

from ...common.config import Settings
from ..dependencies import get_app_settings

logger = logging.getLogger(__name__)


def require_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Valida la API key de la cabecera ``X-API-Key``.

    En modo desarrollo, sin INGEST_API_KEY se permite el acceso con warning.
    """
    expected = settings.api_key

    if not expected:
        if settings.is_production:
            logger.error("[AUTH] CRITICAL: INGEST_API_KEY not configured in production!")
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API key not set",
            )
        logger.warning(
            "[AUTH] INGEST_API_KEY not set - allowing unauthenticated access (DEV ONLY)"
        )
        return

    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    if x_api_key != expected:
        logger.warning("[AUTH] Invalid API key attempt")
        raise HTTPException(status_code=401, detail="Invalid API key")
