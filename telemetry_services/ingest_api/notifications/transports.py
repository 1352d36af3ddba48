"""Transportes de notificación (SMS / email).

Interfaz abstracta que desacopla el dispatcher del proveedor:
- HttpSmsGateway: POST a un gateway SMS interno
- SmtpEmailTransport: email vía SMTP

Los errores se lanzan como excepción; el dispatcher los convierte en FAILED.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Tuple

import requests

from ...common.config import NotificationConfig

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Fallo de envío o transporte mal configurado."""


class SmsTransport(ABC):
    @abstractmethod
    def send_sms(self, phone: str, message: str) -> Dict[str, Any]:
        """Envía un SMS. Devuelve la respuesta del proveedor.

        Raises:
            TransportError / requests.RequestException si falla.
        """


class EmailTransport(ABC):
    @abstractmethod
    def send_email(self, to_address: str, subject: str, body: str) -> Dict[str, Any]:
        """Envía un email de texto plano. Devuelve info del envío."""


class HttpSmsGateway(SmsTransport):
    """Publica SMS transaccionales en un gateway HTTP."""

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        region: str = "ap-northeast-2",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._region = region
        self._timeout = timeout
        self._session = session or requests.Session()

    def send_sms(self, phone: str, message: str) -> Dict[str, Any]:
        if not self._url:
            raise TransportError("SMS_GATEWAY_NOT_SET")

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-Internal-Key"] = self._api_key

        response = self._session.post(
            self._url,
            json={
                "phone_number": phone,
                "message": message,
                "sms_type": "Transactional",
                "region": self._region,
            },
            headers=headers,
            timeout=self._timeout,
        )
        if not response.ok:
            raise TransportError(f"SMS_GATEWAY_HTTP_{response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        message_id = None
        if isinstance(body, dict):
            message_id = body.get("message_id") or body.get("MessageId")
        logger.info("[NOTIFY] SMS sent to=%s message_id=%s", phone, message_id)
        return {"type": "sms", "status_code": response.status_code, "message_id": message_id}


class SmtpEmailTransport(EmailTransport):
    """Envío de emails vía SMTP."""

    def __init__(
        self,
        host: Optional[str],
        from_address: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._from = from_address
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def send_email(self, to_address: str, subject: str, body: str) -> Dict[str, Any]:
        if not self._from:
            raise TransportError("ALERT_EMAIL_FROM_NOT_SET")
        if not self._host:
            raise TransportError("SMTP_HOST_NOT_SET")

        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self._from
        msg["To"] = to_address

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            refused = server.sendmail(self._from, [to_address], msg.as_string())

        if refused:
            raise TransportError(f"SMTP_REFUSED: {refused}")

        logger.info("[NOTIFY] Email sent to=%s subject=%s", to_address, subject)
        return {"type": "email", "to": to_address}


def build_transports(config: NotificationConfig) -> Tuple[SmsTransport, EmailTransport]:
    sms = HttpSmsGateway(
        url=config.sms_gateway_url,
        api_key=config.sms_gateway_key,
        region=config.sms_region,
        timeout=config.transport_timeout_seconds,
    )
    email = SmtpEmailTransport(
        host=config.smtp_host,
        from_address=config.email_from,
        port=config.smtp_port,
        username=config.smtp_user,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        timeout=config.transport_timeout_seconds,
    )
    return sms, email
