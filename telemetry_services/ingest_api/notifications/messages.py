"""Plantillas de mensajes por canal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from ..alarms.models import Alarm
from ..ingest.reading_repository import SensorConfig
from ..ingest.thresholds import Direction

TYPE_LABELS = {"temperature": "Temperatura", "humidity": "Humedad"}
UNITS = {"temperature": "℃", "humidity": "%"}
DIRECTION_LABELS = {
    Direction.HIGH: "por encima del límite superior",
    Direction.LOW: "por debajo del límite inferior",
}


@dataclass(frozen=True)
class AlarmMessages:
    sms: str
    email_subject: str
    email_body: str


def place_label(sensor: SensorConfig) -> str:
    name = sensor.name or f"Sensor#{sensor.sensor_id}"
    return f"{sensor.area_name} - {name}" if sensor.area_name else name


def build_alarm_messages(alarm: Alarm, sensor: SensorConfig) -> AlarmMessages:
    sensor_type = (sensor.sensor_type or "").lower()
    type_label = TYPE_LABELS.get(sensor_type, sensor_type or "Valor")
    unit = UNITS.get(sensor_type, "")
    dir_label = DIRECTION_LABELS[alarm.direction]
    place = place_label(sensor)

    sms = f"{sensor_type.upper()} {alarm.direction.value} @ Sensor#{alarm.sensor_id} : {alarm.value}"

    subject = f"[Alerta] {place}: {type_label} {dir_label}"

    bounds = alarm.threshold_snapshot
    lines = [
        f"El sensor {place} registró {type_label.lower()} {dir_label}.",
        "",
        f"Valor actual: {alarm.value:.1f}{unit}",
    ]
    if alarm.direction == Direction.HIGH and bounds.upper is not None:
        lines.append(f"Límite superior: {bounds.upper}")
    if alarm.direction == Direction.LOW and bounds.lower is not None:
        lines.append(f"Límite inferior: {bounds.lower}")
    lines.append(f"Fecha: {alarm.created_at:%Y-%m-%d %H:%M} (UTC)")

    return AlarmMessages(sms=sms, email_subject=subject, email_body="\n".join(lines))


def alarm_payload(alarm: Alarm) -> Dict[str, Any]:
    """Datos estructurados de la alarma que viajan en ``notification.payload``."""
    return {
        "sensor_id": alarm.sensor_id,
        "value": alarm.value,
        "direction": alarm.direction.value,
        "threshold": {
            "lower": alarm.threshold_snapshot.lower,
            "upper": alarm.threshold_snapshot.upper,
        },
        "at": alarm.created_at.isoformat(),
    }
