"""Reloj inyectable.

Toda la lógica de cooldown/streak pide la hora al reloj, nunca a la BD
(``NOW()``) ni a ``datetime.now`` directamente.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_naive_utc(ts: datetime) -> datetime:
    """Normaliza a UTC sin tzinfo (formato de almacenamiento)."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Reloj real en UTC naive."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Reloj manual para tests y replays."""

    def __init__(self, start: datetime) -> None:
        self._now = to_naive_utc(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, ts: datetime) -> None:
        self._now = to_naive_utc(ts)
