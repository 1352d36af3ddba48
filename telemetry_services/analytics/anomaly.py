"""Detección de anomalías por z-score sobre una ventana histórica."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np


def row_value(row: Mapping[str, Any]) -> Optional[float]:
    """Valor numérico finito de una fila (``value`` o ``data_value``)."""
    raw = row.get("value", row.get("data_value"))
    if raw is None or isinstance(raw, bool):
        return None
    try:
        v = float(raw)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def detect_anomalies(rows: Sequence[Mapping[str, Any]], k: float = 3.0) -> List[Dict[str, Any]]:
    """Marca cada fila con ``is_anomaly`` y ``anomaly_score`` (= |z|).

    - Media y desviación poblacionales (varianza / n, no n-1).
    - Serie constante (std == 0) o sin valores finitos: nada es anómalo.
    - Filas con valor no finito: siempre normales con score 0.

    El resultado de cada fila depende solo del multiconjunto de valores, no
    del orden de entrada.
    """
    values = [row_value(r) for r in rows]
    finite = np.sort(np.asarray([v for v in values if v is not None], dtype=float))

    if finite.size == 0:
        return [{**r, "is_anomaly": False, "anomaly_score": 0.0} for r in rows]

    mean = float(np.mean(finite))
    std = float(np.std(finite))  # ddof=0

    if std == 0.0 or not math.isfinite(std):
        return [{**r, "is_anomaly": False, "anomaly_score": 0.0} for r in rows]

    lower = mean - k * std
    upper = mean + k * std

    out: List[Dict[str, Any]] = []
    for r, v in zip(rows, values):
        if v is None:
            out.append({**r, "is_anomaly": False, "anomaly_score": 0.0})
            continue
        z = (v - mean) / std
        out.append({**r, "is_anomaly": bool(v < lower or v > upper), "anomaly_score": abs(z)})
    return out


def count_anomalies(rows: Sequence[Mapping[str, Any]], k: float = 3.0) -> int:
    return sum(1 for r in detect_anomalies(rows, k) if r["is_anomaly"])
