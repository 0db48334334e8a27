"""
DiscardedRecord model: audit entry for rows rejected before or during persistence.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class DiscardReason(str, Enum):
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    INSERTION_ERROR = "insertion_error"
    DUPLICATE_ID = "duplicate_id"
    MISSING_REQUIRED_FIELDS = "missing_required_fields"
    MALFORMED_DATA = "malformed_data"


class DiscardedRecord(BaseModel):
    """
    Append-only audit entry for a rejected row.

    Attributes:
        id: Assigned by the store
        original_data: Raw row or partially normalized record
        discard_reason: Why the row was rejected
        error_message: Human-readable detail
        file_name: Source CSV member, when known
        row_number: Line number within the source CSV, when known
        import_id: Owning import run
    """

    id: str | None = None
    original_data: dict[str, Any]
    discard_reason: DiscardReason
    error_message: str | None = None
    file_name: str | None = None
    row_number: int | None = None
    import_id: int
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "original_data": {"PROPERTY_ID": "P9", "OWNER_NAME": ""},
                "discard_reason": "missing_required_fields",
                "error_message": "Missing owner name",
                "file_name": "04_From_500_To_Beyond_1.csv",
                "row_number": 17,
                "import_id": 12,
            }
        }
