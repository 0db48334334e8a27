"""
start / status / cancel actions over the import pipeline.

Every action returns an ImportResponse; exceptions are folded into its
message and never reach the caller.
"""

import threading
from typing import Any, Callable

from src.core.config import ImportConfig
from src.core.models import ImportProgress, ImportResponse, ImportRun, ImportStatus
from src.observability.logger import get_logger
from src.warehouse.base import DiscardStore, LedgerStore, PropertyStore

from .ledger import ImportLedger
from .pipeline import ImportPipeline

logger = get_logger(__name__)

ACTIONS = ("start", "status", "cancel")


def _progress(run: ImportRun) -> ImportProgress:
    return ImportProgress(
        total=run.total_records,
        successful=run.successful_records,
        failed=run.failed_records,
    )


def _status_value(status: ImportStatus | str) -> str:
    return status.value if isinstance(status, ImportStatus) else status


class ImportService:
    """
    Action surface driving imports against one set of stores.

    At most one import may run against a destination at a time; callers are
    responsible for not starting two concurrently.
    """

    def __init__(
        self,
        config: ImportConfig,
        property_store: PropertyStore,
        ledger_store: LedgerStore,
        discard_store: DiscardStore,
        pipeline_factory: Callable[..., ImportPipeline] = ImportPipeline,
    ):
        """
        Initialize import service.

        Args:
            config: Import settings used by start
            property_store: Destination property table
            ledger_store: Persistence for import runs
            discard_store: Persistence for discarded rows
            pipeline_factory: Builds the pipeline for start (tests inject fetchers here)
        """
        self.config = config
        self.property_store = property_store
        self.ledger_store = ledger_store
        self.discard_store = discard_store
        self.pipeline_factory = pipeline_factory
        self.ledger = ImportLedger(ledger_store)

    def start(self, cancel_event: threading.Event | None = None) -> ImportResponse:
        """Run a full import and report its outcome."""
        pipeline = self.pipeline_factory(
            self.config, self.property_store, self.ledger_store, self.discard_store
        )
        try:
            summary = pipeline.run(cancel_event=cancel_event)
        except Exception as e:
            logger.error(f"Import failed: {e}")
            return ImportResponse(
                success=False,
                message=f"Import failed: {e}",
                import_id=pipeline.import_id,
                status=ImportStatus.FAILED.value,
            )

        message = "Import completed successfully"
        if summary.status == ImportStatus.CANCELLED:
            message = "Import cancelled"

        return ImportResponse(
            success=True,
            message=message,
            import_id=summary.import_id,
            status=summary.status.value,
            progress=ImportProgress(
                total=summary.total_records,
                successful=summary.successful_records,
                failed=summary.failed_records,
            ),
        )

    def status(self, import_id: int) -> ImportResponse:
        """Report the current ledger snapshot of a run."""
        try:
            run = self.ledger.get(import_id)
        except Exception as e:
            logger.error(f"Failed to read import {import_id}: {e}")
            return ImportResponse(success=False, message=f"Failed to get import status: {e}")

        if run is None:
            return ImportResponse(success=False, message=f"Import {import_id} not found")

        return ImportResponse(
            success=True,
            message="Import status retrieved",
            import_id=import_id,
            status=_status_value(run.status),
            progress=_progress(run),
        )

    def cancel(self, import_id: int) -> ImportResponse:
        """Flag a run as cancelled; a running pipeline stops after its current batch."""
        try:
            run = self.ledger.cancel(import_id)
        except Exception as e:
            logger.error(f"Failed to cancel import {import_id}: {e}")
            return ImportResponse(success=False, message=f"Failed to cancel import: {e}")

        if run is None:
            return ImportResponse(success=False, message=f"Import {import_id} not found")

        if run.status != ImportStatus.CANCELLED:
            return ImportResponse(
                success=False,
                message=f"Import already {_status_value(run.status)}",
                import_id=import_id,
                status=_status_value(run.status),
            )

        return ImportResponse(
            success=True,
            message="Import cancelled successfully",
            import_id=import_id,
            status=ImportStatus.CANCELLED.value,
        )

    def handle(self, request: dict[str, Any] | None) -> ImportResponse:
        """
        Dispatch an action request.

        Args:
            request: {"action": "start" | "status" | "cancel", "importId": int}

        Returns:
            ImportResponse; malformed requests yield success=False
        """
        request = request or {}
        action = request.get("action")

        if not action:
            return ImportResponse(success=False, message="Action is required")
        if action not in ACTIONS:
            return ImportResponse(success=False, message=f"Unknown action: {action}")

        if action == "start":
            return self.start()

        raw_id = request.get("importId", request.get("import_id"))
        if raw_id is None or raw_id == "":
            return ImportResponse(success=False, message=f"Import ID is required for {action}")
        try:
            import_id = int(raw_id)
        except (TypeError, ValueError):
            return ImportResponse(success=False, message=f"Invalid import ID: {raw_id}")

        if action == "status":
            return self.status(import_id)
        return self.cancel(import_id)
