"""
ImportAnalysis model: pre-load summary of identifier coverage.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

SAMPLE_LIMIT = 10


class ImportAnalysis(BaseModel):
    """
    Summary captured during the counting pass, one per import run.

    Attributes:
        import_id: Owning import run (set once the run exists)
        total_records: Data rows counted across all files
        records_with_ids: Rows carrying a source property identifier
        records_without_ids: Rows that will receive a synthesized identifier
        sample_records: A few ID-less rows for inspection
    """

    import_id: int | None = None
    total_records: int = Field(0, ge=0)
    records_with_ids: int = Field(0, ge=0)
    records_without_ids: int = Field(0, ge=0)
    sample_records: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def percentage_with_ids(self) -> float:
        if not self.total_records:
            return 0.0
        return round(self.records_with_ids / self.total_records * 100, 2)

    @property
    def percentage_without_ids(self) -> float:
        if not self.total_records:
            return 0.0
        return round(self.records_without_ids / self.total_records * 100, 2)

    def add_sample(self, sample: dict[str, Any]) -> None:
        if len(self.sample_records) < SAMPLE_LIMIT:
            self.sample_records.append(sample)
