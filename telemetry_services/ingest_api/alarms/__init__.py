"""Alarmas por ruptura de umbral.

Estructura:
- models.py: Alarm, SensorRuntimeState
- alarm_repository.py: Operaciones de BD sobre ``alarm``
- state_repository.py: Operaciones de BD sobre ``sensor_state``
- lifecycle.py: Máquina de estados (AlarmLifecycleManager) y resolución manual
"""

from .models import Alarm, SensorRuntimeState
from .lifecycle import AlarmLifecycleManager, AlarmNotifier, resolve_alarm_manually

__all__ = [
    "Alarm",
    "SensorRuntimeState",
    "AlarmLifecycleManager",
    "AlarmNotifier",
    "resolve_alarm_manually",
]
