"""
Batch writer for the property table.

Removes intra-batch id collisions, then upserts the survivors through the
injected PropertyStore in one statement.
"""

from dataclasses import dataclass

from src.core.errors import BatchInsertError
from src.core.models import DiscardReason
from src.core.normalization import NormalizedRecord
from src.observability.logger import get_logger
from src.observability.metrics import (
    batch_write_duration_seconds,
    batches_processed_total,
    errors_total,
    increment_counter,
    track_duration,
)
from src.warehouse.base import PropertyStore

from .quarantine_writer import DiscardSink

logger = get_logger(__name__)

DUPLICATE_MESSAGE = "Duplicate ID within batch"
ALREADY_IMPORTED_MESSAGE = "ID already imported; kept existing row"


@dataclass
class BatchResult:
    """Outcome of committing one batch."""

    written: int = 0
    duplicates: int = 0
    failed: int = 0


def deduplicate_batch(
    batch: list[NormalizedRecord],
) -> tuple[list[NormalizedRecord], list[NormalizedRecord]]:
    """
    Keep the first occurrence of each id.

    Args:
        batch: Records in source order

    Returns:
        (survivors, duplicates), both in source order
    """
    seen: set[str] = set()
    survivors: list[NormalizedRecord] = []
    duplicates: list[NormalizedRecord] = []

    for item in batch:
        if item.record.id in seen:
            duplicates.append(item)
        else:
            seen.add(item.record.id)
            survivors.append(item)

    return survivors, duplicates


class BatchPropertyWriter:
    """
    Commits normalized batches to the property table.
    """

    def __init__(self, store: PropertyStore, discards: DiscardSink, conflict_policy: str = "update"):
        """
        Initialize batch writer.

        Args:
            store: Destination property table
            discards: Sink receiving duplicate and insertion-error discards
            conflict_policy: "update" or "ignore"
        """
        self.store = store
        self.discards = discards
        self.conflict_policy = conflict_policy

    def commit(self, batch: list[NormalizedRecord], import_id: int) -> BatchResult:
        """
        Deduplicate and upsert one batch.

        Args:
            batch: Normalized records
            import_id: Owning import run

        Returns:
            BatchResult with the number of rows written and duplicates dropped

        Raises:
            BatchInsertError: If the store rejected the batch; every surviving
                record has been recorded as an insertion_error discard
        """
        survivors, duplicates = deduplicate_batch(batch)

        if duplicates:
            logger.info(
                f"Deduplicated batch: {len(batch)} -> {len(survivors)} records "
                f"({len(duplicates)} duplicates)"
            )
            self._record_duplicates(duplicates, import_id, DUPLICATE_MESSAGE)

        if not survivors:
            return BatchResult(duplicates=len(duplicates))

        try:
            with track_duration(batch_write_duration_seconds, conflict_policy=self.conflict_policy):
                written_ids = self.store.upsert_batch(
                    [item.record for item in survivors], self.conflict_policy
                )
        except Exception as e:
            increment_counter(batches_processed_total, status="failure")
            increment_counter(errors_total, error_type=type(e).__name__, component="batch_writer")
            logger.error(f"Batch insert error ({len(survivors)} records): {e}")

            for item in survivors:
                self.discards.record(
                    original_data=item.record.model_dump(mode="json"),
                    reason=DiscardReason.INSERTION_ERROR,
                    import_id=import_id,
                    error_message=str(e),
                    file_name=item.file_name,
                    row_number=item.row_number,
                )
            raise BatchInsertError(len(survivors), e) from e

        increment_counter(batches_processed_total, status="success")

        # Under the ignore policy rows already in the table are skipped
        written = set(written_ids)
        skipped = [item for item in survivors if item.record.id not in written]
        if skipped:
            logger.info(f"Kept {len(skipped)} existing rows (conflict policy {self.conflict_policy})")
            self._record_duplicates(skipped, import_id, ALREADY_IMPORTED_MESSAGE)

        return BatchResult(
            written=len(survivors) - len(skipped),
            duplicates=len(duplicates) + len(skipped),
        )

    def _record_duplicates(
        self, items: list[NormalizedRecord], import_id: int, message: str
    ) -> None:
        for item in items:
            self.discards.record(
                original_data=item.record.model_dump(mode="json"),
                reason=DiscardReason.DUPLICATE_ID,
                import_id=import_id,
                error_message=message,
                file_name=item.file_name,
                row_number=item.row_number,
            )
