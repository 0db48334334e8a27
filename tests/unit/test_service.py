"""
Unit tests for the start / status / cancel action surface.
"""

from unittest.mock import MagicMock

import pytest

from src.batch import ImportLedger, ImportService, ImportSummary
from src.core.errors import DownloadError
from src.core.models import ImportStatus


@pytest.fixture
def service(import_config, property_store, ledger_store, discard_store):
    return ImportService(import_config, property_store, ledger_store, discard_store)


def pipeline_factory(summary=None, error=None, import_id=None):
    pipeline = MagicMock()
    pipeline.import_id = import_id
    if error is not None:
        pipeline.run.side_effect = error
    else:
        pipeline.run.return_value = summary
    return MagicMock(return_value=pipeline)


@pytest.mark.unit
class TestImportServiceHandle:
    """Tests for request validation"""

    @pytest.mark.parametrize("request_body,message", [
        (None, "Action is required"),
        ({}, "Action is required"),
        ({"action": ""}, "Action is required"),
        ({"action": "restart"}, "Unknown action: restart"),
        ({"action": "status"}, "Import ID is required for status"),
        ({"action": "cancel", "importId": ""}, "Import ID is required for cancel"),
        ({"action": "status", "importId": "abc"}, "Invalid import ID: abc"),
    ])
    def test_invalid_requests(self, service, request_body, message):
        response = service.handle(request_body)

        assert response.success is False
        assert response.message == message

    def test_status_of_unknown_import(self, service):
        response = service.handle({"action": "status", "importId": 42})

        assert response.success is False
        assert response.message == "Import 42 not found"

    def test_accepts_string_and_snake_case_ids(self, service, ledger_store):
        import_id = ImportLedger(ledger_store).create(5, "url")

        assert service.handle({"action": "status", "importId": str(import_id)}).success
        assert service.handle({"action": "status", "import_id": import_id}).success


@pytest.mark.unit
class TestImportServiceActions:
    """Tests for start, status and cancel"""

    def test_status_reports_progress(self, service, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(10, "url")
        ledger.update(import_id, status=ImportStatus.IN_PROGRESS, successful_records=4, failed_records=1)

        response = service.status(import_id)

        assert response.success
        assert response.message == "Import status retrieved"
        assert response.status == "in_progress"
        assert response.progress.total == 10
        assert response.progress.successful == 4
        assert response.progress.failed == 1

    def test_status_read_failure(self, import_config, property_store, discard_store):
        ledger_store = MagicMock()
        ledger_store.get_run.side_effect = RuntimeError("connection refused")
        service = ImportService(import_config, property_store, ledger_store, discard_store)

        response = service.status(1)

        assert response.success is False
        assert response.message == "Failed to get import status: connection refused"

    def test_cancel_running_import(self, service, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(10, "url")
        ledger.update(import_id, status=ImportStatus.IN_PROGRESS)

        response = service.cancel(import_id)

        assert response.success
        assert response.message == "Import cancelled successfully"
        assert response.status == "cancelled"
        assert ledger_store.get_run(import_id).status == ImportStatus.CANCELLED

    def test_cancel_finished_import_is_rejected(self, service, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(10, "url")
        ledger.finalize(import_id, ImportStatus.COMPLETED)

        response = service.cancel(import_id)

        assert response.success is False
        assert response.message == "Import already completed"

    def test_cancel_unknown_import(self, service):
        response = service.handle({"action": "cancel", "importId": 7})

        assert response.success is False
        assert response.message == "Import 7 not found"

    def test_start_success(self, import_config, property_store, ledger_store, discard_store):
        summary = ImportSummary(
            import_id=3,
            status=ImportStatus.COMPLETED,
            total_records=5,
            successful_records=4,
            discarded_records=1,
        )
        service = ImportService(
            import_config, property_store, ledger_store, discard_store,
            pipeline_factory=pipeline_factory(summary),
        )

        response = service.handle({"action": "start"})

        assert response.success
        assert response.message == "Import completed successfully"
        assert response.to_payload() == {
            "success": True,
            "message": "Import completed successfully",
            "importId": 3,
            "status": "completed",
            "progress": {"total": 5, "successful": 4, "failed": 0},
        }

    def test_start_cancelled(self, import_config, property_store, ledger_store, discard_store):
        summary = ImportSummary(import_id=3, status=ImportStatus.CANCELLED)
        service = ImportService(
            import_config, property_store, ledger_store, discard_store,
            pipeline_factory=pipeline_factory(summary),
        )

        assert service.start().message == "Import cancelled"

    def test_start_failure_is_reported(self, import_config, property_store, ledger_store, discard_store):
        error = DownloadError("https://example.test/a.zip", "Download failed with status code: 404", 404)
        service = ImportService(
            import_config, property_store, ledger_store, discard_store,
            pipeline_factory=pipeline_factory(error=error),
        )

        response = service.start()

        assert response.success is False
        assert response.message == "Import failed: Download failed with status code: 404"
        assert response.status == "failed"
        assert response.import_id is None
