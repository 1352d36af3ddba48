"""Informe de un sensor para las últimas N horas.

Combina estadística descriptiva, conteo de rupturas de umbral, anomalías
(z-score) y un resumen del pronóstico a 60 minutos.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import numpy as np

from .anomaly import count_anomalies, row_value
from .forecast import ForecastConfig, forecast
from .series_repository import SensorInfo

Trend = Literal["up", "down", "stable"]

TREND_LABELS = {"up": "subida", "down": "bajada", "stable": "estable"}

# Preset usado por el endpoint de pronóstico y por el informe
FORECAST_PRESET = dict(
    step_minutes=1,
    window_minutes=10,
    history_days=0.25,
    k_neighbors=5,
    weight_power=2,
    recency_half_life_minutes=30,
)


def preset_forecast_config(horizon_minutes: float = 60) -> ForecastConfig:
    return ForecastConfig(horizon_minutes=horizon_minutes, **FORECAST_PRESET)


def compute_trend(diff: float, eps: float = 0.3) -> Trend:
    if diff > eps:
        return "up"
    if diff < -eps:
        return "down"
    return "stable"


@dataclass(frozen=True)
class SeriesStats:
    count: int
    min: float
    max: float
    mean: float
    stddev: float


def series_stats(values: Sequence[float]) -> Optional[SeriesStats]:
    """Estadística descriptiva; desviación muestral (n-1)."""
    arr = np.asarray([v for v in values if np.isfinite(v)], dtype=float)
    if arr.size == 0:
        return None
    stddev = float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0
    return SeriesStats(
        count=int(arr.size),
        min=float(np.min(arr)),
        max=float(np.max(arr)),
        mean=float(np.mean(arr)),
        stddev=stddev,
    )


def build_sensor_report(
    sensor: SensorInfo,
    rows: Sequence[Mapping[str, Any]],
    hours: int,
    now: datetime,
) -> Dict[str, Any]:
    """Informe de ``rows`` (ya acotadas a [now - hours, now])."""
    start = now - timedelta(hours=hours)
    header = {
        "sensor": {
            "id": sensor.sensor_id,
            "name": sensor.name,
            "sensor_type": sensor.sensor_type,
            "lower_bound": sensor.lower_bound,
            "upper_bound": sensor.upper_bound,
        },
        "range": {"from": start.isoformat(), "to": now.isoformat(), "hours": hours},
    }

    values = [v for v in (row_value(r) for r in rows) if v is not None]
    if not values:
        return {
            **header,
            "stats": None,
            "threshold_stats": None,
            "anomalies": None,
            "forecast_summary": None,
            "text_summary": "No hay datos registrados en el periodo.",
        }

    stats = series_stats(values)
    arr = np.asarray(values, dtype=float)

    threshold_stats = {
        "lower_bound": sensor.lower_bound,
        "upper_bound": sensor.upper_bound,
        "over_high_count": int(np.sum(arr > sensor.upper_bound)) if sensor.upper_bound is not None else 0,
        "under_low_count": int(np.sum(arr < sensor.lower_bound)) if sensor.lower_bound is not None else 0,
    }

    anomalies = {"total": count_anomalies(rows)}

    forecast_summary = None
    points = forecast(rows, preset_forecast_config(60))
    if points:
        last_value = values[-1]
        mean_forecast = float(np.mean([p.value for p in points]))
        forecast_summary = {
            "last_value": last_value,
            "mean_forecast": mean_forecast,
            "trend": compute_trend(mean_forecast - last_value),
        }

    report = {
        **header,
        "stats": asdict(stats) if stats else None,
        "threshold_stats": threshold_stats,
        "anomalies": anomalies,
        "forecast_summary": forecast_summary,
    }
    report["text_summary"] = build_text_summary(report)
    return report


def build_text_summary(report: Mapping[str, Any]) -> str:
    sensor = report["sensor"]
    rng = report["range"]
    parts: List[str] = [
        f"Periodo: últimas {rng['hours']} horas ({rng['from']} a {rng['to']}).",
        f"Sensor #{sensor['id']} ({sensor['name'] or 'sin nombre'}, tipo {sensor['sensor_type'] or 'N/A'}).",
    ]

    stats = report.get("stats")
    if stats:
        parts.append(
            f"{stats['count']} lecturas: mínimo {stats['min']:.2f}, máximo {stats['max']:.2f}, "
            f"media {stats['mean']:.2f}, desviación {stats['stddev']:.2f}."
        )

    th = report.get("threshold_stats")
    if th and (th["lower_bound"] is not None or th["upper_bound"] is not None):
        limits = []
        if th["lower_bound"] is not None:
            limits.append(f"inferior {th['lower_bound']}")
        if th["upper_bound"] is not None:
            limits.append(f"superior {th['upper_bound']}")
        parts.append(f"Límites configurados: {', '.join(limits)}.")
        parts.append(
            f"Superó el límite superior {th['over_high_count']} veces y "
            f"quedó por debajo del inferior {th['under_low_count']} veces."
        )

    anomalies = report.get("anomalies")
    if anomalies:
        parts.append(f"Se detectaron {anomalies['total']} lecturas anómalas.")

    fs = report.get("forecast_summary")
    if fs:
        parts.append(
            f"Valor actual {fs['last_value']:.2f}; media prevista para la próxima hora "
            f"{fs['mean_forecast']:.2f}, tendencia {TREND_LABELS[fs['trend']]}."
        )

    return " ".join(parts)
