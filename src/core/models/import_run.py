"""
ImportRun model tracking one execution of the import pipeline.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ImportStatus(str, Enum):
    """Lifecycle states of an import run."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (ImportStatus.PENDING, ImportStatus.IN_PROGRESS)


class ImportRun(BaseModel):
    """
    Ledger entry for one import run.

    Attributes:
        id: Generated on creation
        source_url: Source location(s), joined with "; " when several
        total_records: Data rows counted before loading began
        successful_records: Rows written to the property table
        failed_records: Rows lost to batch insertion failures
        discarded_records: Rows rejected before persistence (parse, validation, duplicates)
        status: Current lifecycle state
        error_message: Populated when the run failed
    """

    id: int | None = None
    source_url: str
    total_records: int = Field(0, ge=0)
    successful_records: int = Field(0, ge=0)
    failed_records: int = Field(0, ge=0)
    discarded_records: int = Field(0, ge=0)
    status: ImportStatus = ImportStatus.PENDING
    error_message: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 12,
                "source_url": "https://dpupd.sco.ca.gov/04_From_500_To_Beyond.zip",
                "total_records": 1500000,
                "successful_records": 1499000,
                "failed_records": 0,
                "discarded_records": 1000,
                "status": "completed",
            }
        }
