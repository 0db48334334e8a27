"""
Property and discard writers.
"""

from .quarantine_writer import DiscardSink
from .warehouse_writer import BatchPropertyWriter, BatchResult, deduplicate_batch

__all__ = [
    "BatchPropertyWriter",
    "BatchResult",
    "DiscardSink",
    "deduplicate_batch",
]
