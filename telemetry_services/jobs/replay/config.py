"""Replay job configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ReplayConfig:
    """Configuración del replay de un CSV histórico sobre un sensor."""
    csv_path: str
    sensor_id: int
    sensor_type: Optional[str] = None
    value_column: Optional[str] = None
    time_column: Optional[str] = None
    speed: float = 0.0  # lecturas por segundo; 0 = sin pausa
    chunk_size: int = 1000
    historical_clock: bool = True
    # sin columna de tiempo, el reloj histórico avanza este paso por lectura
    step_seconds: float = 60.0
