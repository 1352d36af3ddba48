"""Analítica de series de sensores (solo lectura, sin efectos)."""

from .anomaly import count_anomalies, detect_anomalies
from .forecast import ForecastConfig, ForecastPoint, forecast
from .report import build_sensor_report, preset_forecast_config

__all__ = [
    "ForecastConfig",
    "ForecastPoint",
    "build_sensor_report",
    "count_anomalies",
    "detect_anomalies",
    "forecast",
    "preset_forecast_config",
]
