"""Dispatcher de notificaciones.

Contrato de ``dispatch(notification_id)``:
- SENT → éxito sin efectos (idempotente, nunca se envía dos veces)
- Envío OK → SENT + sent_at
- Cualquier error de transporte → FAILED + sent_at + error en payload

Los errores de transporte NUNCA salen de aquí: el fallo es un estado, no una
excepción. Los errores de BD sí se propagan (abortan la transacción).
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ...common.clock import Clock, SystemClock
from . import repository as repo
from .models import Channel, DispatchResult, Notification, NotificationStatus
from .phone import to_e164
from .transports import EmailTransport, SmsTransport, TransportError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Envía notificaciones por su canal y registra el resultado."""

    def __init__(
        self,
        db: Session | Connection,
        sms: SmsTransport,
        email: EmailTransport,
        clock: Clock | None = None,
        default_country_code: str = "82",
    ) -> None:
        self._db = db
        self._sms = sms
        self._email = email
        self._clock = clock or SystemClock()
        self._country_code = default_country_code

    def dispatch(self, notification_id: int) -> DispatchResult:
        nt = repo.get_notification(self._db, notification_id)
        if nt is None:
            logger.warning("[NOTIFY] dispatch NOT_FOUND id=%s", notification_id)
            return DispatchResult(ok=False, status=None, reason="NOT_FOUND")

        if nt.status == NotificationStatus.SENT:
            logger.info("[NOTIFY] dispatch ALREADY_SENT id=%s", notification_id)
            return DispatchResult(ok=True, status=NotificationStatus.SENT, reason="ALREADY_SENT")

        payload = dict(nt.payload)
        now = self._clock.now()
        try:
            result = self._send(nt)
        except (TransportError, ValueError, OSError) as e:
            # requests.RequestException y smtplib.SMTPException heredan de OSError
            reason = str(e) or type(e).__name__
            payload["last_error"] = reason
            payload["result"] = {"ok": False, "error": reason}
            repo.mark_result(self._db, nt.id, NotificationStatus.FAILED, now, payload)
            logger.warning("[NOTIFY] dispatch FAILED id=%s channel=%s err=%s", nt.id, nt.channel, reason)
            return DispatchResult(ok=False, status=NotificationStatus.FAILED, reason=reason)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            payload["last_error"] = reason
            payload["result"] = {"ok": False, "error": reason}
            repo.mark_result(self._db, nt.id, NotificationStatus.FAILED, now, payload)
            logger.exception("[NOTIFY] dispatch unexpected error id=%s", nt.id)
            return DispatchResult(ok=False, status=NotificationStatus.FAILED, reason=reason)

        payload["result"] = {"ok": True, **result}
        repo.mark_result(self._db, nt.id, NotificationStatus.SENT, now, payload)
        logger.info("[NOTIFY] dispatch SENT id=%s channel=%s", nt.id, nt.channel)
        return DispatchResult(ok=True, status=NotificationStatus.SENT)

    def retry(self, notification_id: int) -> DispatchResult:
        """Retry manual: FAILED → PENDING y vuelve a despachar.

        Una notificación SENT no se resetea nunca.
        """
        if not repo.reset_to_pending(self._db, notification_id):
            nt = repo.get_notification(self._db, notification_id)
            if nt is None:
                return DispatchResult(ok=False, status=None, reason="NOT_FOUND")
            return DispatchResult(ok=True, status=nt.status, reason="ALREADY_SENT")
        logger.info("[NOTIFY] retry id=%s reset to PENDING", notification_id)
        return self.dispatch(notification_id)

    def _send(self, nt: Notification) -> Dict[str, Any]:
        if nt.channel == Channel.SMS.value:
            if not nt.phone:
                raise TransportError("NO_PHONE_ON_USER")
            phone = to_e164(nt.phone, self._country_code)
            message = nt.message or f"Alarm #{nt.alarm_id} (company {nt.company_id})"
            return self._sms.send_sms(phone, message)

        if nt.channel == Channel.EMAIL.value:
            if not nt.email:
                raise TransportError("NO_EMAIL_ON_USER")
            subject = nt.message or f"Alarm #{nt.alarm_id}"
            body = nt.payload.get("body") or nt.message or f"Alarm #{nt.alarm_id} for company {nt.company_id}"
            return self._email.send_email(nt.email, subject, body)

        raise TransportError(f"UNKNOWN_CHANNEL:{nt.channel}")
