"""
Core data models for the unclaimed-property import pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .discarded_record import DiscardedRecord, DiscardReason
from .import_analysis import ImportAnalysis
from .import_run import ImportRun, ImportStatus
from .responses import ImportProgress, ImportResponse, PropertySearch
from .unclaimed_property import PROPERTY_COLUMNS, UnclaimedPropertyRecord

__all__ = [
    "UnclaimedPropertyRecord",
    "PROPERTY_COLUMNS",
    "ImportRun",
    "ImportStatus",
    "DiscardedRecord",
    "DiscardReason",
    "ImportAnalysis",
    "ImportProgress",
    "ImportResponse",
    "PropertySearch",
]
