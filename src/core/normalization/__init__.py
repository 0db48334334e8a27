"""
Mapping of raw CSV rows onto the canonical property schema.
"""

from .identifiers import SyntheticIdGenerator
from .normalizer import (
    Discard,
    NormalizedRecord,
    RecordNormalizer,
    has_source_id,
    parse_decimal,
    parse_integer,
)

__all__ = [
    "Discard",
    "NormalizedRecord",
    "RecordNormalizer",
    "SyntheticIdGenerator",
    "has_source_id",
    "parse_decimal",
    "parse_integer",
]
