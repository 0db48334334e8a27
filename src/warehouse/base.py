"""
Storage interfaces consumed by the import pipeline.

The pipeline depends only on these abstractions; Postgres-backed and
in-memory implementations are injected by the caller.
"""

from abc import ABC, abstractmethod
from typing import Any

from src.core.models import (
    DiscardedRecord,
    DiscardReason,
    ImportAnalysis,
    ImportRun,
    PropertySearch,
    UnclaimedPropertyRecord,
)


class PropertyStore(ABC):
    """Destination table for canonical property rows."""

    @abstractmethod
    def upsert_batch(
        self, records: list[UnclaimedPropertyRecord], conflict_policy: str = "update"
    ) -> list[str]:
        """
        Write records keyed on id in one statement.

        Args:
            records: Records with pairwise distinct ids
            conflict_policy: "update" overwrites existing rows, "ignore" keeps them

        Returns:
            Ids actually inserted or updated
        """

    @abstractmethod
    def truncate(self) -> None:
        """Remove every row."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored rows."""

    @abstractmethod
    def get(self, property_id: str) -> dict[str, Any] | None:
        """Return one row by id, or None."""

    @abstractmethod
    def search(self, criteria: PropertySearch) -> list[dict[str, Any]]:
        """Return rows matching criteria, largest balances first."""


class LedgerStore(ABC):
    """Persistence for ImportRun rows and their analyses."""

    @abstractmethod
    def create_run(self, run: ImportRun) -> int:
        """Insert a run and return its generated id."""

    @abstractmethod
    def update_run(self, import_id: int, fields: dict[str, Any]) -> None:
        """Apply a partial update to a run."""

    @abstractmethod
    def get_run(self, import_id: int) -> ImportRun | None:
        """Return a run by id, or None."""

    @abstractmethod
    def list_runs(self, limit: int = 10) -> list[ImportRun]:
        """Return the most recent runs, newest first."""

    @abstractmethod
    def insert_analysis(self, analysis: ImportAnalysis) -> None:
        """Store the pre-load analysis of a run."""

    @abstractmethod
    def get_analysis(self, import_id: int) -> ImportAnalysis | None:
        """Return the analysis recorded for a run, or None."""

    @abstractmethod
    def clear_analysis(self) -> None:
        """Remove every stored analysis."""


class DiscardStore(ABC):
    """Append-only audit table of rejected rows."""

    GROUPABLE_FIELDS = ("file_name", "error_message")

    @abstractmethod
    def insert_discards(self, discards: list[DiscardedRecord]) -> int:
        """Append discards and return how many were written."""

    @abstractmethod
    def clear_discards(self) -> None:
        """Remove every stored discard."""

    @abstractmethod
    def count_by_reason(self, import_id: int | None = None) -> dict[str, int]:
        """Return discard counts keyed by reason value."""

    @abstractmethod
    def count_by_field(self, import_id: int, field: str, limit: int = 10) -> list[tuple[str, int]]:
        """
        Group a run's discards by file_name or error_message.

        Returns:
            (value, count) pairs, most frequent first; missing values are "N/A"
        """

    @abstractmethod
    def list_discards(
        self,
        import_id: int | None = None,
        reason: DiscardReason | None = None,
        limit: int = 10,
    ) -> list[DiscardedRecord]:
        """Return recent discards, newest first."""
