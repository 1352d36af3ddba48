"""Fixtures compartidas: BD SQLite en memoria, reloj fijo y transportes falsos."""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from telemetry_services.common import schema
from telemetry_services.common.clock import FixedClock
from telemetry_services.common.config import AlarmConfig, NotificationConfig, Settings
from telemetry_services.ingest_api.notifications.transports import EmailTransport, SmsTransport

T0 = datetime(2024, 5, 1, 12, 0, 0)


# =============================================================================
# BD
# =============================================================================

@pytest.fixture
def engine() -> Iterator[Engine]:
    """SQLite en memoria compartida entre conexiones (StaticPool)."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    schema.ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def conn(engine: Engine) -> Iterator[Connection]:
    with engine.begin() as c:
        yield c


def seed_sensor(
    conn: Connection,
    sensor_id: int = 1,
    company_id: int = 1,
    sensor_type: str = "temperature",
    is_alarm: bool = True,
    lower: Optional[float] = 10.0,
    upper: Optional[float] = 90.0,
    name: str = "Cámara 1",
    area_name: Optional[str] = "Almacén",
) -> None:
    conn.execute(
        insert(schema.sensor).values(
            id=sensor_id,
            company_id=company_id,
            name=name,
            area_name=area_name,
            sensor_type=sensor_type,
            is_alarm=is_alarm,
        )
    )
    if lower is not None or upper is not None:
        conn.execute(
            insert(schema.thresholds).values(sensor_id=sensor_id, lower_bound=lower, upper_bound=upper)
        )


def seed_user(
    conn: Connection,
    user_id: int,
    company_id: int = 1,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    is_active: bool = True,
) -> None:
    conn.execute(
        insert(schema.users).values(
            id=user_id, company_id=company_id, email=email, phone=phone, is_active=is_active
        )
    )


def seed_rule(
    conn: Connection,
    company_id: int,
    channel: str,
    target_id: int,
    sensor_type: Optional[str] = None,
) -> None:
    conn.execute(
        insert(schema.notification_rules).values(
            company_id=company_id, sensor_type=sensor_type, channel=channel, target_id=target_id
        )
    )


# =============================================================================
# RELOJ / CONFIG / TRANSPORTES
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def alarm_config() -> AlarmConfig:
    return AlarmConfig(cooldown_seconds=60, auto_resolve_n=3)


@pytest.fixture
def settings(alarm_config: AlarmConfig) -> Settings:
    return Settings(
        database_url="sqlite://",
        log_level="DEBUG",
        api_key=None,
        environment="test",
        alarm=alarm_config,
        notification=NotificationConfig(routing="auto", dispatch_inline=True),
    )


@pytest.fixture
def sms_transport() -> MagicMock:
    sms = MagicMock(spec=SmsTransport)
    sms.send_sms.return_value = {"type": "sms", "status_code": 200, "message_id": "m-1"}
    return sms


@pytest.fixture
def email_transport() -> MagicMock:
    email = MagicMock(spec=EmailTransport)
    email.send_email.return_value = {"type": "email"}
    return email


@pytest.fixture
def transports(sms_transport: MagicMock, email_transport: MagicMock):
    return sms_transport, email_transport
