"""Modelos de notificaciones."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationStatus(str, Enum):
    """PENDING → SENT | FAILED. FAILED solo vuelve a PENDING por retry manual."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass(frozen=True)
class RouteTarget:
    """Destino resuelto por el router: canal + usuario."""

    channel: Channel
    target_id: int


@dataclass(frozen=True)
class Notification:
    id: int
    company_id: int
    alarm_id: int
    channel: str
    target_id: int
    status: NotificationStatus
    message: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    # Contacto del usuario destino (JOIN users)
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    status: Optional[NotificationStatus]
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ok": self.ok,
            "status": self.status.value if self.status else None,
        }
        if self.reason:
            out["reason"] = self.reason
        return out
