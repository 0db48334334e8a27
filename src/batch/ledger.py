"""
Import ledger: lifecycle and running counters of import runs.

Creating a run is the only ledger operation allowed to fail an import.
Every later mutation is best-effort telemetry: failures are logged and
swallowed so a status write can never abort a load.
"""

from typing import Any

from src.core.errors import LedgerError
from src.core.models import ImportAnalysis, ImportRun, ImportStatus
from src.observability.logger import get_logger
from src.observability.metrics import errors_total, increment_counter
from src.warehouse.base import LedgerStore

logger = get_logger(__name__)


def resolve_status(failed: int, cancelled: bool = False, error: str | None = None) -> ImportStatus:
    """
    Compute the terminal status of a run from its outcome.

    Args:
        failed: Records lost to insertion failures
        cancelled: Whether a cancellation was observed
        error: Message of the exception that aborted the run, if any

    Returns:
        failed, cancelled, completed_with_errors or completed
    """
    if error is not None:
        return ImportStatus.FAILED
    if cancelled:
        return ImportStatus.CANCELLED
    if failed > 0:
        return ImportStatus.COMPLETED_WITH_ERRORS
    return ImportStatus.COMPLETED


class ImportLedger:
    """
    Tracks import runs through a LedgerStore.
    """

    def __init__(self, store: LedgerStore):
        """
        Initialize import ledger.

        Args:
            store: Persistence for runs and analyses
        """
        self.store = store
        self._finalized: set[int] = set()

    def create(self, total_records: int, source_url: str) -> int:
        """
        Register a new pending run with zeroed counters.

        Args:
            total_records: Data rows counted before loading
            source_url: Source location(s) of the run

        Returns:
            Generated import id

        Raises:
            LedgerError: If the run could not be stored
        """
        run = ImportRun(source_url=source_url, total_records=total_records)
        try:
            import_id = self.store.create_run(run)
        except Exception as e:
            raise LedgerError(f"Failed to create import record: {e}") from e

        logger.info(f"Created import record with ID: {import_id}")
        return import_id

    def update(self, import_id: int, **fields: Any) -> bool:
        """
        Persist a partial update (running counters, status).

        Returns:
            True if the update was stored
        """
        try:
            self.store.update_run(import_id, fields)
            return True
        except Exception as e:
            increment_counter(errors_total, error_type=type(e).__name__, component="ledger")
            logger.error(f"Failed to update import record {import_id}: {e}")
            return False

    def finalize(
        self,
        import_id: int,
        status: ImportStatus,
        error_message: str | None = None,
        **counters: int,
    ) -> bool:
        """
        Set the terminal status of a run, once.

        Args:
            import_id: Run to finalize
            status: Terminal status
            error_message: Populated when the run failed
            **counters: Final successful/failed/discarded counts

        Returns:
            True if this call finalized the run
        """
        if import_id in self._finalized:
            logger.warning(f"Import {import_id} already finalized; ignoring {status.value}")
            return False

        self._finalized.add(import_id)
        fields: dict[str, Any] = {"status": status, **counters}
        if error_message is not None:
            fields["error_message"] = error_message

        stored = self.update(import_id, **fields)
        logger.info(f"Import {import_id} finished with status {status.value}")
        return stored

    def get(self, import_id: int) -> ImportRun | None:
        """
        Fetch the current snapshot of a run.

        Raises:
            Whatever the store raises; status queries surface read failures
        """
        return self.store.get_run(import_id)

    def cancel(self, import_id: int) -> ImportRun | None:
        """
        Flag a run as cancelled.

        A running pipeline observes the flag between batches and stops.
        Runs already in a terminal state are left unchanged.

        Returns:
            The run after the request, or None if it does not exist
        """
        run = self.store.get_run(import_id)
        if run is None:
            return None
        if run.status.is_terminal:
            logger.info(f"Import {import_id} is already {run.status.value}; not cancelling")
            return run

        self.store.update_run(import_id, {"status": ImportStatus.CANCELLED})
        logger.info(f"Import {import_id} cancelled")
        return self.store.get_run(import_id)

    def is_cancelled(self, import_id: int) -> bool:
        try:
            run = self.store.get_run(import_id)
        except Exception as e:
            logger.warning(f"Could not read status of import {import_id}: {e}")
            return False
        return run is not None and run.status == ImportStatus.CANCELLED

    def record_analysis(self, analysis: ImportAnalysis) -> bool:
        try:
            self.store.insert_analysis(analysis)
        except Exception as e:
            logger.error(f"Failed to record import analysis: {e}")
            return False
        logger.info("Recorded import analysis")
        return True

    def clear_analysis(self) -> None:
        try:
            self.store.clear_analysis()
        except Exception as e:
            logger.warning(f"Could not clear import analysis: {e}")

    def recent(self, limit: int = 10) -> list[ImportRun]:
        return self.store.list_runs(limit)
