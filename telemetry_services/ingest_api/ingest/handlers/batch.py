"""Handler para ingesta en lote.

Procesa las lecturas EN ORDEN dentro de una única transacción. Los SKIP y
NORMAL no son errores; cualquier excepción de BD aborta el lote completo
(rollback en el llamador, sin commits parciales).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ....common.clock import Clock
from ....common.config import AlarmConfig
from ...alarms.lifecycle import AlarmNotifier
from ..effects import SKIP_EFFECTS, AlarmCreated, IngestEffect, ReadingEffect
from ..processor import ReadingProcessor
from ..validation import RawReading

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Resumen por lote: contadores + efecto de cada lectura."""

    inserted: int = 0
    alarms_created: int = 0
    auto_reset: int = 0
    cooldown_skip: int = 0
    skipped: int = 0
    effects: List[ReadingEffect] = field(default_factory=list)

    def add(self, effect: ReadingEffect) -> None:
        self.effects.append(effect)
        if effect.persisted:
            self.inserted += 1

        kind = effect.effect
        if kind == IngestEffect.ALARM_CREATED:
            self.alarms_created += 1
        elif kind == IngestEffect.ALARM_AUTORESET:
            self.auto_reset += 1
        elif kind == IngestEffect.COOLDOWN_SKIP:
            self.cooldown_skip += 1
        elif kind in SKIP_EFFECTS:
            self.skipped += 1

    @property
    def notification_ids(self) -> List[int]:
        """Ids PENDING creados por el lote, para despachar tras el commit."""
        return [nid for e in self.effects if isinstance(e, AlarmCreated) for nid in e.notification_ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inserted": self.inserted,
            "alarms_created": self.alarms_created,
            "auto_reset": self.auto_reset,
            "cooldown_skip": self.cooldown_skip,
            "skipped": self.skipped,
            "effects": [e.to_dict() for e in self.effects],
        }


class BatchReadingHandler:
    """Ingesta de varias lecturas con un único ``ReadingProcessor``."""

    def __init__(
        self,
        db: Session | Connection,
        config: AlarmConfig | None = None,
        clock: Clock | None = None,
        notifier: Optional[AlarmNotifier] = None,
    ) -> None:
        self._processor = ReadingProcessor(db, config=config, clock=clock, notifier=notifier)

    def ingest(self, rows: Iterable[RawReading | Mapping[str, Any]]) -> BatchSummary:
        summary = BatchSummary()
        for row in rows:
            summary.add(self._processor.process(row))

        logger.info(
            "[INGEST] Batch done readings=%d inserted=%d alarms=%d auto_reset=%d cooldown=%d skipped=%d",
            len(summary.effects),
            summary.inserted,
            summary.alarms_created,
            summary.auto_reset,
            summary.cooldown_skip,
            summary.skipped,
        )
        return summary
