"""
Unit tests for the batch property writer and discard sink.
"""

from unittest.mock import MagicMock

import pytest

from src.batch.writers import BatchPropertyWriter, DiscardSink, deduplicate_batch
from src.core.errors import BatchInsertError
from src.core.models import DiscardReason, UnclaimedPropertyRecord
from src.core.normalization import Discard, NormalizedRecord


def normalized(property_id, owner="Jane Doe", row_number=2):
    return NormalizedRecord(
        record=UnclaimedPropertyRecord(id=property_id, owner_name=owner),
        file_name="a.csv",
        row_number=row_number,
    )


@pytest.mark.unit
class TestDeduplicateBatch:
    """Tests for intra-batch id collision handling"""

    def test_first_occurrence_wins(self):
        batch = [normalized("A", "first"), normalized("A", "second"), normalized("B")]

        survivors, duplicates = deduplicate_batch(batch)

        assert [item.record.id for item in survivors] == ["A", "B"]
        assert survivors[0].record.owner_name == "first"
        assert [item.record.owner_name for item in duplicates] == ["second"]

    def test_empty_batch(self):
        assert deduplicate_batch([]) == ([], [])


@pytest.mark.unit
class TestBatchPropertyWriter:
    """Tests for BatchPropertyWriter.commit"""

    def test_duplicates_are_discarded_and_survivors_written(self, property_store, discard_store):
        sink = DiscardSink(discard_store)
        writer = BatchPropertyWriter(property_store, sink)

        result = writer.commit([normalized("A"), normalized("A", row_number=3), normalized("B")], 1)
        sink.flush()

        assert result.written == 2
        assert result.duplicates == 1
        assert property_store.count() == 2
        assert len(discard_store.discards) == 1
        discard = discard_store.discards[0]
        assert discard.discard_reason == DiscardReason.DUPLICATE_ID
        assert discard.error_message == "Duplicate ID within batch"
        assert discard.row_number == 3
        assert discard.original_data["id"] == "A"

    def test_store_failure_records_insertion_errors(self, discard_store):
        store = MagicMock()
        store.upsert_batch.side_effect = RuntimeError("deadlock detected")
        sink = DiscardSink(discard_store)
        writer = BatchPropertyWriter(store, sink)

        with pytest.raises(BatchInsertError) as exc_info:
            writer.commit([normalized("A"), normalized("B")], 4)
        sink.flush()

        assert exc_info.value.record_count == 2
        assert [d.discard_reason for d in discard_store.discards] == [
            DiscardReason.INSERTION_ERROR,
            DiscardReason.INSERTION_ERROR,
        ]
        assert all(d.error_message == "deadlock detected" for d in discard_store.discards)
        assert all(d.import_id == 4 for d in discard_store.discards)

    def test_conflict_policy_is_passed_to_store(self):
        store = MagicMock()
        store.upsert_batch.return_value = ["A"]
        writer = BatchPropertyWriter(store, DiscardSink(MagicMock()), conflict_policy="ignore")

        writer.commit([normalized("A")], 1)

        assert store.upsert_batch.call_args.args[1] == "ignore"

    def test_empty_batch_skips_store(self):
        store = MagicMock()
        writer = BatchPropertyWriter(store, DiscardSink(MagicMock()))

        result = writer.commit([], 1)

        assert result.written == 0
        store.upsert_batch.assert_not_called()

    def test_ignore_policy_keeps_existing_rows(self, property_store, discard_store):
        sink = DiscardSink(discard_store)
        BatchPropertyWriter(property_store, sink).commit([normalized("A", "original")], 1)

        BatchPropertyWriter(property_store, sink, "ignore").commit([normalized("A", "changed")], 1)

        assert property_store.get("A")["owner_name"] == "original"

    def test_rows_kept_by_ignore_policy_are_duplicates(self, property_store, discard_store):
        sink = DiscardSink(discard_store)
        BatchPropertyWriter(property_store, sink).commit([normalized("A", "original")], 1)

        result = BatchPropertyWriter(property_store, sink, "ignore").commit(
            [normalized("A", "changed", row_number=5), normalized("B")], 1
        )
        sink.flush()

        assert result.written == 1
        assert result.duplicates == 1
        [discard] = discard_store.discards
        assert discard.discard_reason == DiscardReason.DUPLICATE_ID
        assert discard.error_message == "ID already imported; kept existing row"
        assert discard.row_number == 5


@pytest.mark.unit
class TestDiscardSink:
    """Tests for the buffered discard audit trail"""

    def test_flushes_when_buffer_is_full(self, discard_store):
        sink = DiscardSink(discard_store, flush_size=2)

        sink.record({"a": 1}, DiscardReason.PARSE_ERROR, import_id=1)
        assert sink.pending == 1
        sink.record({"a": 2}, DiscardReason.PARSE_ERROR, import_id=1)

        assert sink.pending == 0
        assert len(discard_store.discards) == 2

    def test_store_failure_is_swallowed(self):
        store = MagicMock()
        store.insert_discards.side_effect = RuntimeError("connection lost")
        sink = DiscardSink(store)
        sink.record({"a": 1}, DiscardReason.MALFORMED_DATA, import_id=1)

        assert sink.flush() == 0
        assert sink.write_failures == 1
        assert sink.pending == 0
        # Counts still reflect what was observed
        assert sink.counts[DiscardReason.MALFORMED_DATA] == 1

    def test_total_can_exclude_reasons(self, discard_store):
        sink = DiscardSink(discard_store)
        sink.record({}, DiscardReason.DUPLICATE_ID, import_id=1)
        sink.record({}, DiscardReason.INSERTION_ERROR, import_id=1)
        sink.record({}, DiscardReason.INSERTION_ERROR, import_id=1)

        assert sink.total() == 3
        assert sink.total(exclude=(DiscardReason.INSERTION_ERROR,)) == 1

    def test_record_discard_copies_location(self, discard_store):
        sink = DiscardSink(discard_store)
        discard = Discard(
            reason=DiscardReason.MISSING_REQUIRED_FIELDS,
            message="Missing owner name",
            original_data={"PROPERTY_ID": "P9"},
            file_name="b.csv",
            row_number=17,
        )

        sink.record_discard(discard, import_id=12)
        sink.flush()

        stored = discard_store.discards[0]
        assert stored.file_name == "b.csv"
        assert stored.row_number == 17
        assert stored.error_message == "Missing owner name"
        assert stored.import_id == 12

    def test_clear_resets_buffer_counts_and_store(self, discard_store):
        sink = DiscardSink(discard_store)
        sink.record({}, DiscardReason.PARSE_ERROR, import_id=1)
        sink.flush()
        sink.record({}, DiscardReason.PARSE_ERROR, import_id=1)

        sink.clear()

        assert sink.pending == 0
        assert sink.total() == 0
        assert discard_store.discards == []
