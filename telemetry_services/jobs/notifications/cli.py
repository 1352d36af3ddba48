"""CLI entry point for the pending notifications dispatcher."""

from __future__ import annotations

import argparse
import logging
import time

from sqlalchemy.exc import SQLAlchemyError

from ...common.config import get_settings
from ...common.db import get_engine
from .runner import dispatch_pending

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Despacho de notificaciones PENDING")
    p.add_argument("--limit", type=int, default=100)
    p.add_argument("--sleep-seconds", type=float, default=30.0)
    p.add_argument("--once", action="store_true", help="run a single iteration and exit")
    args = p.parse_args()

    settings = get_settings()
    engine = get_engine()
    logger.info("Notification dispatcher started limit=%d sleep=%.1fs", args.limit, args.sleep_seconds)

    while True:
        try:
            dispatch_pending(engine, settings, limit=args.limit)
            if args.once:
                return
            time.sleep(args.sleep_seconds)
        except SQLAlchemyError as e:
            logger.error("Error en iteración: %s", e)
            if args.once:
                raise
            logger.info("Continuando con siguiente iteración...")
            time.sleep(args.sleep_seconds)


if __name__ == "__main__":
    main()
