"""
Bulk import of California unclaimed-property data.
"""

from .ledger import ImportLedger, resolve_status
from .pipeline import ImportPipeline, ImportSummary, PipelineState
from .service import ImportService

__all__ = [
    "ImportLedger",
    "ImportPipeline",
    "ImportService",
    "ImportSummary",
    "PipelineState",
    "resolve_status",
]
