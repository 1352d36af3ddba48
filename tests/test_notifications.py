"""Tests de router, dispatcher, plantillas y transportes de notificaciones."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests
from sqlalchemy import select

from telemetry_services.common import schema
from telemetry_services.common.config import NotificationConfig
from telemetry_services.ingest_api.alarms.alarm_repository import insert_alarm
from telemetry_services.ingest_api.alarms.models import Alarm
from telemetry_services.ingest_api.ingest.reading_repository import get_sensor_config
from telemetry_services.ingest_api.ingest.thresholds import Direction, ThresholdBounds
from telemetry_services.ingest_api.notifications import (
    Channel,
    HttpSmsGateway,
    NotificationDispatcher,
    NotificationRouter,
    NotificationStatus,
    RouteTarget,
    SmtpEmailTransport,
    TransportError,
)
from telemetry_services.ingest_api.notifications import repository as repo
from telemetry_services.ingest_api.notifications.messages import build_alarm_messages
from telemetry_services.ingest_api.notifications.phone import to_e164

from conftest import T0, seed_rule, seed_sensor, seed_user


@pytest.fixture
def alarm(conn) -> Alarm:
    seed_sensor(conn, sensor_id=1, company_id=1, lower=10.0, upper=90.0)
    bounds = ThresholdBounds(lower=10.0, upper=90.0)
    alarm_id = insert_alarm(conn, 1, 1, Direction.HIGH, 95.5, bounds, T0)
    return Alarm(
        id=alarm_id,
        company_id=1,
        sensor_id=1,
        direction=Direction.HIGH,
        value=95.5,
        threshold_snapshot=bounds,
        created_at=T0,
    )


@pytest.fixture
def dispatcher(conn, clock, sms_transport, email_transport) -> NotificationDispatcher:
    return NotificationDispatcher(conn, sms=sms_transport, email=email_transport, clock=clock)


def _notification(conn, alarm, channel=Channel.SMS, target_id=10, message="TEMPERATURE HIGH", payload=None):
    return repo.insert_notification(
        conn,
        company_id=alarm.company_id,
        alarm_id=alarm.id,
        channel=channel,
        target_id=target_id,
        message=message,
        payload=payload or {"sensor_id": alarm.sensor_id},
        created_at=T0,
    )


# =============================================================================
# ROUTER
# =============================================================================

class TestRouter:

    def test_auto_uses_users_without_rules(self, conn, clock, alarm):
        seed_user(conn, 10, email="a@example.com", phone="01012345678")
        seed_user(conn, 11, email="b@example.com")
        seed_user(conn, 12, phone="01099998888", is_active=False)
        seed_user(conn, 13, company_id=2, email="other@example.com")

        router = NotificationRouter(conn, NotificationConfig(routing="auto"), clock=clock)
        targets = router.resolve_targets(1, "temperature")

        assert targets == [
            RouteTarget(Channel.EMAIL, 10),
            RouteTarget(Channel.SMS, 10),
            RouteTarget(Channel.EMAIL, 11),
        ]

    def test_auto_prefers_rules(self, conn, clock, alarm):
        seed_user(conn, 10, email="a@example.com", phone="01012345678")
        seed_user(conn, 11, email="b@example.com")
        seed_rule(conn, 1, "sms", 10, sensor_type="temperature")
        seed_rule(conn, 1, "email", 11, sensor_type="humidity")
        seed_rule(conn, 1, "email", 11)

        router = NotificationRouter(conn, NotificationConfig(routing="auto"), clock=clock)

        assert router.resolve_targets(1, "temperature") == [
            RouteTarget(Channel.SMS, 10),
            RouteTarget(Channel.EMAIL, 11),
        ]

    def test_rules_mode_without_rules_notifies_nobody(self, conn, clock, alarm):
        seed_user(conn, 10, email="a@example.com")
        router = NotificationRouter(conn, NotificationConfig(routing="rules"), clock=clock)
        sensor = get_sensor_config(conn, 1)

        assert router.on_alarm_created(alarm, sensor) == []

    def test_creates_pending_rows(self, conn, clock, alarm):
        seed_user(conn, 10, email="a@example.com", phone="01012345678")
        router = NotificationRouter(conn, NotificationConfig(routing="users"), clock=clock)
        sensor = get_sensor_config(conn, 1)

        created = router.on_alarm_created(alarm, sensor)

        rows = conn.execute(
            select(schema.notification).order_by(schema.notification.c.id)
        ).mappings().all()
        assert created == [r["id"] for r in rows]
        assert [r["status"] for r in rows] == ["PENDING", "PENDING"]
        assert [r["channel"] for r in rows] == ["email", "sms"]
        assert rows[0]["message"].startswith("[Alerta]")
        assert rows[1]["message"] == "TEMPERATURE HIGH @ Sensor#1 : 95.5"
        email_payload = repo.get_notification(conn, rows[0]["id"]).payload
        assert "Valor actual: 95.5℃" in email_payload["body"]
        assert email_payload["threshold"] == {"lower": 10.0, "upper": 90.0}


# =============================================================================
# DISPATCHER
# =============================================================================

class TestDispatcher:

    def test_send_sms(self, conn, alarm, dispatcher, sms_transport, clock):
        seed_user(conn, 10, phone="010-1234-5678")
        nid = _notification(conn, alarm)

        result = dispatcher.dispatch(nid)

        assert result.ok is True
        assert result.status == NotificationStatus.SENT
        sms_transport.send_sms.assert_called_once_with("+821012345678", "TEMPERATURE HIGH")
        nt = repo.get_notification(conn, nid)
        assert nt.status == NotificationStatus.SENT
        assert nt.sent_at == clock.now()
        assert nt.payload["result"]["message_id"] == "m-1"
        assert nt.payload["sensor_id"] == 1

    def test_dispatch_is_idempotent(self, conn, alarm, dispatcher, sms_transport):
        seed_user(conn, 10, phone="+821012345678")
        nid = _notification(conn, alarm)

        first = dispatcher.dispatch(nid)
        second = dispatcher.dispatch(nid)

        assert first.ok and second.ok
        assert second.reason == "ALREADY_SENT"
        assert sms_transport.send_sms.call_count == 1

    def test_email_uses_payload_body(self, conn, alarm, dispatcher, email_transport):
        seed_user(conn, 11, email="b@example.com")
        nid = _notification(conn, alarm, Channel.EMAIL, 11, message="Asunto", payload={"body": "Cuerpo"})

        dispatcher.dispatch(nid)

        email_transport.send_email.assert_called_once_with("b@example.com", "Asunto", "Cuerpo")

    def test_transport_error_becomes_failed(self, conn, alarm, dispatcher, sms_transport):
        seed_user(conn, 10, phone="+821012345678")
        sms_transport.send_sms.side_effect = TransportError("SMS_GATEWAY_HTTP_503")
        nid = _notification(conn, alarm)

        result = dispatcher.dispatch(nid)

        assert result.ok is False
        assert result.status == NotificationStatus.FAILED
        assert result.reason == "SMS_GATEWAY_HTTP_503"
        nt = repo.get_notification(conn, nid)
        assert nt.status == NotificationStatus.FAILED
        assert nt.payload["last_error"] == "SMS_GATEWAY_HTTP_503"
        assert nt.payload["sensor_id"] == 1

    def test_missing_contact(self, conn, alarm, dispatcher, sms_transport):
        seed_user(conn, 10, email="only-email@example.com")
        nid = _notification(conn, alarm)

        result = dispatcher.dispatch(nid)

        assert result.reason == "NO_PHONE_ON_USER"
        sms_transport.send_sms.assert_not_called()

    def test_not_found(self, dispatcher):
        result = dispatcher.dispatch(12345)
        assert result.ok is False
        assert result.status is None
        assert result.reason == "NOT_FOUND"

    def test_retry_failed(self, conn, alarm, dispatcher, sms_transport):
        seed_user(conn, 10, phone="+821012345678")
        sms_transport.send_sms.side_effect = [OSError("timeout"), {"type": "sms"}]
        nid = _notification(conn, alarm)

        assert dispatcher.dispatch(nid).status == NotificationStatus.FAILED
        retried = dispatcher.retry(nid)

        assert retried.ok is True
        assert retried.status == NotificationStatus.SENT
        assert sms_transport.send_sms.call_count == 2

    def test_retry_never_resends_sent(self, conn, alarm, dispatcher, sms_transport):
        seed_user(conn, 10, phone="+821012345678")
        nid = _notification(conn, alarm)
        dispatcher.dispatch(nid)

        result = dispatcher.retry(nid)

        assert result.reason == "ALREADY_SENT"
        assert sms_transport.send_sms.call_count == 1


# =============================================================================
# PLANTILLAS, TELÉFONOS Y TRANSPORTES
# =============================================================================

class TestMessagesAndPhones:

    def test_messages(self, conn, alarm):
        messages = build_alarm_messages(alarm, get_sensor_config(conn, 1))

        assert messages.sms == "TEMPERATURE HIGH @ Sensor#1 : 95.5"
        assert messages.email_subject == "[Alerta] Almacén - Cámara 1: Temperatura por encima del límite superior"
        assert "Límite superior: 90.0" in messages.email_body
        assert "Fecha: 2024-05-01 12:00 (UTC)" in messages.email_body

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("010-1234-5678", "+821012345678"),
            ("+82 10 1234 5678", "+821012345678"),
            ("821012345678", "+821012345678"),
        ],
    )
    def test_to_e164(self, raw, expected):
        assert to_e164(raw) == expected

    def test_to_e164_default_country(self):
        assert to_e164("0612345678", default_country_code="34") == "+34612345678"

    @pytest.mark.parametrize("raw", ["", "12-34", "abc"])
    def test_to_e164_invalid(self, raw):
        with pytest.raises(ValueError):
            to_e164(raw)


class TestTransports:

    def test_sms_gateway_not_configured(self):
        with pytest.raises(TransportError, match="SMS_GATEWAY_NOT_SET"):
            HttpSmsGateway(url=None).send_sms("+821012345678", "hola")

    def test_sms_gateway_posts_json(self):
        session = MagicMock(spec=requests.Session)
        response = MagicMock(ok=True, status_code=200)
        response.json.return_value = {"MessageId": "abc"}
        session.post.return_value = response

        gateway = HttpSmsGateway(url="http://sms.local/send", api_key="k", session=session)
        out = gateway.send_sms("+821012345678", "hola")

        assert out["message_id"] == "abc"
        kwargs = session.post.call_args.kwargs
        assert kwargs["json"]["phone_number"] == "+821012345678"
        assert kwargs["headers"]["X-Internal-Key"] == "k"

    def test_sms_gateway_http_error(self):
        session = MagicMock(spec=requests.Session)
        session.post.return_value = MagicMock(ok=False, status_code=502, text="bad gateway")

        with pytest.raises(TransportError, match="SMS_GATEWAY_HTTP_502"):
            HttpSmsGateway(url="http://sms.local/send", session=session).send_sms("+1", "x")

    def test_email_from_not_configured(self):
        with pytest.raises(TransportError, match="ALERT_EMAIL_FROM_NOT_SET"):
            SmtpEmailTransport(host="smtp.local", from_address=None).send_email("a@b.c", "s", "b")
