"""
Discard sink: buffered audit trail of rejected rows.

Discards are collected in memory and bulk-inserted through a DiscardStore.
A failed write is logged and dropped; auditing must never stop an import.
"""

from collections import Counter
from typing import Any

from src.core.models import DiscardedRecord, DiscardReason
from src.core.normalization import Discard
from src.observability.logger import get_logger
from src.observability.metrics import errors_total, increment_counter, records_discarded_total
from src.warehouse.base import DiscardStore

logger = get_logger(__name__)


class DiscardSink:
    """
    Records discards with reason codes for later audit.

    Attributes:
        counts: Discards recorded per reason over the sink's lifetime
        write_failures: Discards lost because the store rejected them
    """

    def __init__(self, store: DiscardStore, flush_size: int = 100):
        """
        Initialize discard sink.

        Args:
            store: Destination for discarded records
            flush_size: Buffered discards that trigger an automatic flush
        """
        self.store = store
        self.flush_size = flush_size
        self.counts: Counter[DiscardReason] = Counter()
        self.write_failures = 0
        self._buffer: list[DiscardedRecord] = []

    def record(
        self,
        original_data: dict[str, Any],
        reason: DiscardReason,
        import_id: int,
        error_message: str | None = None,
        file_name: str | None = None,
        row_number: int | None = None,
    ) -> None:
        """
        Buffer one discard, flushing when the buffer is full.

        Args:
            original_data: Raw row or partially normalized record
            reason: Discard reason code
            import_id: Owning import run
            error_message: Human-readable detail
            file_name: Source CSV member
            row_number: Line within the source CSV
        """
        self._buffer.append(
            DiscardedRecord(
                original_data=original_data,
                discard_reason=reason,
                error_message=error_message,
                file_name=file_name,
                row_number=row_number,
                import_id=import_id,
            )
        )
        self.counts[reason] += 1
        increment_counter(records_discarded_total, reason=reason.value)

        if len(self._buffer) >= self.flush_size:
            self.flush()

    def record_discard(self, discard: Discard, import_id: int) -> None:
        """Buffer a Discard produced by the normalizer."""
        self.record(
            original_data=discard.original_data,
            reason=discard.reason,
            import_id=import_id,
            error_message=discard.message,
            file_name=discard.file_name,
            row_number=discard.row_number,
        )

    def flush(self) -> int:
        """
        Write buffered discards to the store.

        Returns:
            Number of discards written (0 if the write failed)
        """
        if not self._buffer:
            return 0

        pending, self._buffer = self._buffer, []
        try:
            written = self.store.insert_discards(pending)
        except Exception as e:
            self.write_failures += len(pending)
            increment_counter(errors_total, error_type=type(e).__name__, component="discard_sink")
            logger.error(f"Failed to record {len(pending)} discarded records: {e}")
            return 0

        return written

    def clear(self) -> None:
        """Drop buffered discards and remove stored ones (start of a fresh run)."""
        self._buffer.clear()
        self.counts.clear()
        try:
            self.store.clear_discards()
        except Exception as e:
            logger.warning(f"Could not clear discarded records: {e}")

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def total(self, *, exclude: tuple[DiscardReason, ...] = ()) -> int:
        """Discards recorded so far, optionally excluding some reasons."""
        return sum(count for reason, count in self.counts.items() if reason not in exclude)
