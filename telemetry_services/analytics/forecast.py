"""Pronóstico de corto plazo por patrones (k-NN) con fallback de regresión.

Pasos:
1. (timestamp, valor) finitos, ordenados por tiempo. Menos de 3 puntos → []
2. Recorte a los últimos ``history_days``
3. Buckets de ``step_minutes`` (media de las lecturas de cada slot)
4. k-NN: ventanas históricas más parecidas al patrón actual y media
   ponderada de su continuación
5. Si no hay datos suficientes para k-NN: regresión lineal (OLS) sobre el
   índice de bucket

Siempre se devuelven exactamente ``horizon_steps`` puntos.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..common.clock import to_naive_utc
from .anomaly import row_value

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)
_EPS = 1e-6
_TIME_KEYS = ("observed_at", "upload_at", "timestamp", "t")


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class ForecastConfig:
    """Parámetros del pronóstico.

    Attributes
    ----------
    horizon_minutes: float
        Longitud del pronóstico.
    step_minutes: float
        Ancho de bucket y separación entre puntos pronosticados.
    window_minutes: float
        Longitud del patrón reciente que se compara con el histórico.
    history_days: float
        Solo se usa el histórico más reciente (0 = todo).
    k_neighbors: int
        Vecinos más cercanos que se promedian.
    weight_power: float
        Peso = 1 / (distancia + eps) ** weight_power.
    recency_half_life_minutes: float
        Si > 0, los patrones antiguos pierden la mitad de peso cada N minutos.
    """

    horizon_minutes: float = 60
    step_minutes: float = 1
    window_minutes: float = 60
    history_days: float = 7
    k_neighbors: int = 5
    weight_power: float = 2
    recency_half_life_minutes: float = 0

    def __post_init__(self) -> None:
        if self.step_minutes <= 0:
            raise ValueError("step_minutes debe ser > 0")
        if self.horizon_minutes <= 0:
            raise ValueError("horizon_minutes debe ser > 0")

    @property
    def window_steps(self) -> int:
        return max(3, _round_half_up(self.window_minutes / self.step_minutes))

    @property
    def horizon_steps(self) -> int:
        return max(1, _round_half_up(self.horizon_minutes / self.step_minutes))

    @property
    def step(self) -> timedelta:
        return timedelta(minutes=self.step_minutes)


@dataclass(frozen=True)
class ForecastPoint:
    predicted_at: datetime
    value: float
    lower: Optional[float]
    upper: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "predicted_at": self.predicted_at.isoformat(),
            "value": self.value,
            "lower": self.lower,
            "upper": self.upper,
        }


def _row_time(row: Mapping[str, Any]) -> Optional[datetime]:
    for key in _TIME_KEYS:
        raw = row.get(key)
        if raw is None:
            continue
        if isinstance(raw, datetime):
            return to_naive_utc(raw)
        if isinstance(raw, str):
            try:
                return to_naive_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00")))
            except ValueError:
                return None
    return None


def _to_series(rows: Sequence[Mapping[str, Any]]) -> List[Tuple[datetime, float]]:
    seq: List[Tuple[datetime, float]] = []
    for r in rows:
        t = _row_time(r)
        v = row_value(r)
        if t is None or v is None:
            continue
        seq.append((t, v))
    seq.sort(key=lambda p: p[0])
    return seq


def _micros(t: datetime) -> int:
    d = t - _EPOCH
    return (d.days * 86400 + d.seconds) * 1_000_000 + d.microseconds


def build_buckets(seq: Sequence[Tuple[datetime, float]], step: timedelta) -> Tuple[List[datetime], np.ndarray]:
    """Media por slot de ancho ``step`` (alineado a epoch), en orden temporal."""
    step_us = max(1, _micros(_EPOCH + step))
    slots = np.asarray([_micros(t) // step_us * step_us for t, _ in seq], dtype=np.int64)
    values = np.asarray([v for _, v in seq], dtype=float)

    keys, inverse = np.unique(slots, return_inverse=True)
    sums = np.bincount(inverse, weights=values)
    counts = np.bincount(inverse)

    times = [_EPOCH + timedelta(microseconds=int(k)) for k in keys]
    return times, sums / counts


def knn_forecast(values: np.ndarray, cfg: ForecastConfig) -> Optional[List[Tuple[float, float, float]]]:
    """(media, lower, upper) por paso futuro, o None si no hay candidatos válidos."""
    n = values.size
    w, h = cfg.window_steps, cfg.horizon_steps
    if n < w + h + 1:
        return None

    current = values[n - w:]
    max_start = n - w - h
    patterns = sliding_window_view(values, w)[: max_start + 1]
    futures = sliding_window_view(values, h)[w: w + max_start + 1]

    dist = np.sqrt(np.sum((patterns - current) ** 2, axis=1))
    weights = 1.0 / np.power(dist + _EPS, cfg.weight_power)

    if cfg.recency_half_life_minutes > 0:
        starts = np.arange(max_start + 1)
        age_minutes = ((n - w) - starts) * cfg.step_minutes
        weights = weights * np.exp(-math.log(2) / cfg.recency_half_life_minutes * age_minutes)

    top = np.argsort(dist, kind="stable")[: max(1, cfg.k_neighbors)]
    top_w = weights[top]
    w_sum = float(np.sum(top_w))
    if not (w_sum > 0 and math.isfinite(w_sum)):
        return None

    norm = top_w / w_sum
    fut = futures[top]
    mean = norm @ fut
    mean_sq = norm @ (fut ** 2)
    sigma = np.sqrt(np.maximum(mean_sq - mean ** 2, 0.0))

    return [(float(m), float(m - 2 * s), float(m + 2 * s)) for m, s in zip(mean, sigma)]


def regression_forecast(values: np.ndarray, horizon_steps: int) -> List[Tuple[float, float, float]]:
    """OLS valor ~ índice de bucket, proyectado ``horizon_steps`` pasos."""
    n = values.size
    xs = np.arange(n, dtype=float)
    sum_x = float(np.sum(xs))
    sum_y = float(np.sum(values))
    sum_xx = float(np.sum(xs * xs))
    sum_xy = float(np.sum(xs * values))

    denom = n * sum_xx - sum_x * sum_x
    if denom == 0:
        last = float(values[-1])
        return [(last, last, last)] * horizon_steps

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y * sum_xx - sum_x * sum_xy) / denom

    residuals = values - (slope * xs + intercept)
    var_res = float(np.sum(residuals ** 2)) / max(1, n - 2)
    sigma = math.sqrt(var_res) if var_res > 0 else 0.0

    out: List[Tuple[float, float, float]] = []
    for step in range(1, horizon_steps + 1):
        mean = slope * (n - 1 + step) + intercept
        out.append((mean, mean - 2 * sigma, mean + 2 * sigma))
    return out


def forecast(rows: Sequence[Mapping[str, Any]], config: ForecastConfig | None = None) -> List[ForecastPoint]:
    cfg = config or ForecastConfig()

    seq = _to_series(rows)
    if len(seq) < 3:
        logger.debug("[FORECAST] Datos insuficientes points=%d", len(seq))
        return []

    if cfg.history_days and cfg.history_days > 0:
        cutoff = seq[-1][0] - timedelta(days=cfg.history_days)
        seq = [p for p in seq if p[0] >= cutoff]
        if len(seq) < 3:
            logger.debug("[FORECAST] Datos insuficientes tras recorte points=%d", len(seq))
            return []

    times, values = build_buckets(seq, cfg.step)

    method = "knn"
    predicted = knn_forecast(values, cfg)
    if predicted is None:
        method = "regression"
        predicted = regression_forecast(values, cfg.horizon_steps)

    logger.debug(
        "[FORECAST] method=%s buckets=%d window=%d horizon=%d",
        method, values.size, cfg.window_steps, cfg.horizon_steps,
    )

    last_time = times[-1]
    return [
        ForecastPoint(
            predicted_at=last_time + (i + 1) * cfg.step,
            value=value,
            lower=lower,
            upper=upper,
        )
        for i, (value, lower, upper) in enumerate(predicted)
    ]
