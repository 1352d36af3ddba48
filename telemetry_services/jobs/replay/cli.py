"""CLI entry point for the replay job."""

from __future__ import annotations

import argparse
import logging

from ...common.config import get_settings
from ...common.db import get_engine
from .config import ReplayConfig
from .runner import run_replay

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Replay de lecturas históricas (CSV) por el flujo de alarmas")
    p.add_argument("csv_path")
    p.add_argument("--sensor-id", type=int, required=True)
    p.add_argument("--sensor-type", default=None)
    p.add_argument("--value-column", default=None)
    p.add_argument("--time-column", default=None)
    p.add_argument("--speed", type=float, default=0.0, help="lecturas por segundo (0 = sin pausa)")
    p.add_argument("--chunk-size", type=int, default=1000)
    p.add_argument("--step-seconds", type=float, default=60.0, help="paso del reloj histórico si el CSV no trae tiempo")
    p.add_argument("--wall-clock", action="store_true", help="usar la hora real en vez del tiempo del CSV")
    args = p.parse_args()

    cfg = ReplayConfig(
        csv_path=args.csv_path,
        sensor_id=args.sensor_id,
        sensor_type=args.sensor_type,
        value_column=args.value_column,
        time_column=args.time_column,
        speed=args.speed,
        chunk_size=args.chunk_size,
        historical_clock=not args.wall_clock,
        step_seconds=args.step_seconds,
    )

    logger.info("Replay started csv=%s sensor_id=%d", cfg.csv_path, cfg.sensor_id)
    counts = run_replay(get_engine(), get_settings(), cfg)

    logger.info("=== Replay completado ===")
    for effect, n in sorted(counts.items()):
        logger.info("%s: %d", effect, n)


if __name__ == "__main__":
    main()
