"""Definición de tablas (SQLAlchemy Core).

Las consultas del servicio usan ``text()``; estas tablas existen para crear el
esquema en desarrollo/tests y documentar columnas.

Tablas de solo lectura para este servicio (las mantiene el CRUD):
- sensor, thresholds, users, notification_rules

Tablas propias:
- sensor_data, alarm, sensor_state, notification
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()


sensor = Table(
    "sensor",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("company_id", Integer, nullable=False),
    Column("name", String(100)),
    Column("area_name", String(100)),
    Column("sensor_type", String(20), nullable=False),
    Column("is_alarm", Boolean, nullable=False, default=True),
    Column("deleted_at", DateTime),
)

thresholds = Table(
    "thresholds",
    metadata,
    Column("sensor_id", Integer, ForeignKey("sensor.id"), primary_key=True),
    Column("lower_bound", Float),
    Column("upper_bound", Float),
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("company_id", Integer, nullable=False),
    Column("email", String(200)),
    Column("phone", String(40)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("deleted_at", DateTime),
)

notification_rules = Table(
    "notification_rules",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("company_id", Integer, nullable=False),
    Column("sensor_type", String(20)),  # NULL = todos los tipos
    Column("channel", String(10), nullable=False),
    Column("target_id", Integer, ForeignKey("users.id"), nullable=False),
)

sensor_data = Table(
    "sensor_data",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sensor_id", Integer, ForeignKey("sensor.id"), nullable=False),
    Column("sensor_type", String(20), nullable=False),
    Column("observed_at", DateTime, nullable=False),
    Column("sequence_no", Integer, nullable=False, default=1),
    Column("value", Float, nullable=False),
    Column("aux_sum", Float),
    Column("aux_count", Integer),
    UniqueConstraint("sensor_id", "observed_at", "sequence_no", name="uq_sensor_data_natural"),
)

alarm = Table(
    "alarm",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_id", Integer, nullable=False),
    Column("sensor_id", Integer, ForeignKey("sensor.id"), nullable=False),
    Column("direction", String(4), nullable=False),
    Column("value", Float, nullable=False),
    Column("threshold_snapshot", Text),
    Column("created_at", DateTime, nullable=False),
    Column("resolved_at", DateTime),
    Column("resolved_by", Integer),
)

sensor_state = Table(
    "sensor_state",
    metadata,
    Column("sensor_id", Integer, ForeignKey("sensor.id"), primary_key=True),
    Column("normal_streak", Integer, nullable=False, default=0),
    Column("last_alarm_id", Integer),
    Column("last_value", Float),
    Column("updated_at", DateTime),
)

notification = Table(
    "notification",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_id", Integer, nullable=False),
    Column("alarm_id", Integer, ForeignKey("alarm.id"), nullable=False),
    Column("channel", String(10), nullable=False),
    Column("target_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("status", String(10), nullable=False, default="PENDING"),
    Column("message", Text),
    Column("payload", Text),
    Column("created_at", DateTime, nullable=False),
    Column("sent_at", DateTime),
)


def ensure_schema(engine: Engine) -> None:
    """Crea las tablas que falten. Idempotente."""
    logger.info("[DB] Ensuring schema exists (%s)", engine.dialect.name)
    metadata.create_all(engine, checkfirst=True)
