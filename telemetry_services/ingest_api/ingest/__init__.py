"""Ingesta de lecturas: validación, umbrales y efectos.

``processor`` y ``handlers`` dependen de ``alarms``; se importan desde sus
módulos para no crear ciclos.
"""

from .effects import IngestEffect, ReadingEffect
from .thresholds import Classification, Direction, ThresholdBounds, classify
from .validation import RawReading, Reading, ReadingValidator

__all__ = [
    "Classification",
    "Direction",
    "IngestEffect",
    "RawReading",
    "Reading",
    "ReadingEffect",
    "ReadingValidator",
    "ThresholdBounds",
    "classify",
]
