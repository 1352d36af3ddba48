"""Handlers de ingesta.

- batch: lote de lecturas en una transacción, con resumen por efecto
"""

from .batch import BatchReadingHandler, BatchSummary

__all__ = [
    "BatchReadingHandler",
    "BatchSummary",
]
