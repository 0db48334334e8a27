"""
Unit tests for the import ledger.
"""

from unittest.mock import MagicMock

import pytest

from src.batch import ImportLedger, resolve_status
from src.core.errors import LedgerError
from src.core.models import ImportAnalysis, ImportStatus


@pytest.mark.unit
class TestResolveStatus:
    """Tests for terminal status resolution"""

    @pytest.mark.parametrize("failed,cancelled,error,expected", [
        (0, False, None, ImportStatus.COMPLETED),
        (3, False, None, ImportStatus.COMPLETED_WITH_ERRORS),
        (0, True, None, ImportStatus.CANCELLED),
        (3, True, None, ImportStatus.CANCELLED),
        (0, False, "boom", ImportStatus.FAILED),
        (0, True, "boom", ImportStatus.FAILED),
    ])
    def test_resolve_status(self, failed, cancelled, error, expected):
        assert resolve_status(failed, cancelled=cancelled, error=error) == expected


@pytest.mark.unit
class TestImportLedger:
    """Tests for run lifecycle bookkeeping"""

    def test_create_registers_pending_run(self, ledger_store):
        ledger = ImportLedger(ledger_store)

        import_id = ledger.create(10, "https://example.test/a.zip")

        run = ledger.get(import_id)
        assert run.status == ImportStatus.PENDING
        assert run.total_records == 10
        assert run.successful_records == 0
        assert run.source_url == "https://example.test/a.zip"

    def test_create_failure_raises_ledger_error(self):
        store = MagicMock()
        store.create_run.side_effect = RuntimeError("relation does not exist")

        with pytest.raises(LedgerError, match="Failed to create import record"):
            ImportLedger(store).create(1, "url")

    def test_update_failure_is_swallowed(self):
        store = MagicMock()
        store.update_run.side_effect = RuntimeError("connection lost")

        assert ImportLedger(store).update(1, successful_records=5) is False

    def test_finalize_runs_once(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(2, "url")

        assert ledger.finalize(import_id, ImportStatus.COMPLETED, successful_records=2)
        assert not ledger.finalize(import_id, ImportStatus.FAILED, error_message="late")

        run = ledger.get(import_id)
        assert run.status == ImportStatus.COMPLETED
        assert run.successful_records == 2
        assert run.error_message is None

    def test_finalize_failed_sets_error_message(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(2, "url")

        ledger.finalize(import_id, ImportStatus.FAILED, error_message="disk full")

        assert ledger.get(import_id).error_message == "disk full"

    def test_cancel_running_import(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(2, "url")
        ledger.update(import_id, status=ImportStatus.IN_PROGRESS)

        run = ledger.cancel(import_id)

        assert run.status == ImportStatus.CANCELLED
        assert ledger.is_cancelled(import_id)

    def test_cancel_leaves_terminal_run_unchanged(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        import_id = ledger.create(2, "url")
        ledger.finalize(import_id, ImportStatus.COMPLETED)

        run = ledger.cancel(import_id)

        assert run.status == ImportStatus.COMPLETED

    def test_cancel_unknown_import(self, ledger_store):
        assert ImportLedger(ledger_store).cancel(999) is None

    def test_is_cancelled_tolerates_read_failure(self):
        store = MagicMock()
        store.get_run.side_effect = RuntimeError("timeout")

        assert ImportLedger(store).is_cancelled(1) is False

    def test_record_and_clear_analysis(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        analysis = ImportAnalysis(import_id=1, total_records=4, records_with_ids=3, records_without_ids=1)

        assert ledger.record_analysis(analysis)
        assert ledger_store.get_analysis(1).percentage_without_ids == 25.0

        ledger.clear_analysis()
        assert ledger_store.get_analysis(1) is None

    def test_recent_is_newest_first(self, ledger_store):
        ledger = ImportLedger(ledger_store)
        first = ledger.create(1, "a")
        second = ledger.create(1, "b")

        assert [run.id for run in ledger.recent()] == [second, first]
