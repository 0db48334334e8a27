"""
In-memory storage adapters.

Used for --dry-run imports and in tests; they honor the same contracts as
the Postgres stores (upsert keyed on id, newest-first listings).
"""

import itertools
import threading
from datetime import datetime
from typing import Any

from src.core.models import (
    DiscardedRecord,
    DiscardReason,
    ImportAnalysis,
    ImportRun,
    PropertySearch,
    UnclaimedPropertyRecord,
)

from .base import DiscardStore, LedgerStore, PropertyStore


class InMemoryPropertyStore(PropertyStore):
    """Dict-backed property table."""

    def __init__(self):
        self.rows: dict[str, UnclaimedPropertyRecord] = {}
        self.upsert_calls = 0

    def upsert_batch(
        self, records: list[UnclaimedPropertyRecord], conflict_policy: str = "update"
    ) -> list[str]:
        ids = [record.id for record in records]
        if len(ids) != len(set(ids)):
            raise ValueError("ON CONFLICT DO UPDATE command cannot affect row a second time")

        self.upsert_calls += 1
        written = []
        for record in records:
            if conflict_policy == "ignore" and record.id in self.rows:
                continue
            self.rows[record.id] = record.model_copy(update={"updated_at": datetime.utcnow()})
            written.append(record.id)
        return written

    def truncate(self) -> None:
        self.rows.clear()

    def count(self) -> int:
        return len(self.rows)

    def get(self, property_id: str) -> dict[str, Any] | None:
        record = self.rows.get(property_id)
        return record.model_dump() if record else None

    def search(self, criteria: PropertySearch) -> list[dict[str, Any]]:
        name = criteria.name.lower()
        matches = []
        for record in self.rows.values():
            if name not in record.owner_name.lower():
                continue
            if criteria.min_amount is not None and record.current_cash_balance < criteria.min_amount:
                continue
            if criteria.max_amount is not None and record.current_cash_balance > criteria.max_amount:
                continue
            if criteria.city and criteria.city.lower() not in (record.owner_city or "").lower():
                continue
            if criteria.property_type and record.property_type != criteria.property_type:
                continue
            matches.append(record)

        matches.sort(key=lambda r: r.current_cash_balance, reverse=True)
        return [record.model_dump() for record in matches[: criteria.limit]]


class InMemoryLedgerStore(LedgerStore):
    """List-backed import ledger; safe to poll from another thread."""

    def __init__(self):
        self.runs: dict[int, ImportRun] = {}
        self.analyses: dict[int, ImportAnalysis] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create_run(self, run: ImportRun) -> int:
        with self._lock:
            import_id = next(self._ids)
            self.runs[import_id] = run.model_copy(update={"id": import_id})
            return import_id

    def update_run(self, import_id: int, fields: dict[str, Any]) -> None:
        with self._lock:
            run = self.runs.get(import_id)
            if run is None:
                raise KeyError(f"Import run {import_id} not found")
            self.runs[import_id] = run.model_copy(
                update={**fields, "updated_at": datetime.utcnow()}
            )

    def get_run(self, import_id: int) -> ImportRun | None:
        with self._lock:
            run = self.runs.get(import_id)
            return run.model_copy() if run else None

    def list_runs(self, limit: int = 10) -> list[ImportRun]:
        with self._lock:
            ordered = sorted(self.runs.values(), key=lambda r: r.id, reverse=True)
            return [run.model_copy() for run in ordered[:limit]]

    def insert_analysis(self, analysis: ImportAnalysis) -> None:
        self.analyses[analysis.import_id] = analysis.model_copy(deep=True)

    def get_analysis(self, import_id: int) -> ImportAnalysis | None:
        return self.analyses.get(import_id)

    def clear_analysis(self) -> None:
        self.analyses.clear()


class InMemoryDiscardStore(DiscardStore):
    """List-backed discard audit table."""

    def __init__(self):
        self.discards: list[DiscardedRecord] = []
        self._ids = itertools.count(1)

    def insert_discards(self, discards: list[DiscardedRecord]) -> int:
        for discard in discards:
            self.discards.append(discard.model_copy(update={"id": str(next(self._ids))}))
        return len(discards)

    def clear_discards(self) -> None:
        self.discards.clear()

    def count_by_reason(self, import_id: int | None = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for discard in self.discards:
            if import_id is not None and discard.import_id != import_id:
                continue
            key = discard.discard_reason.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    def count_by_field(self, import_id: int, field: str, limit: int = 10) -> list[tuple[str, int]]:
        if field not in self.GROUPABLE_FIELDS:
            raise ValueError(f"Cannot group discards by {field}")

        counts: dict[str, int] = {}
        for discard in self.discards:
            if discard.import_id != import_id:
                continue
            key = getattr(discard, field) or "N/A"
            counts[key] = counts.get(key, 0) + 1
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]

    def list_discards(
        self,
        import_id: int | None = None,
        reason: DiscardReason | None = None,
        limit: int = 10,
    ) -> list[DiscardedRecord]:
        selected = [
            d for d in reversed(self.discards)
            if (import_id is None or d.import_id == import_id)
            and (reason is None or d.discard_reason == reason)
        ]
        return selected[:limit]
