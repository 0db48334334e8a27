"""
Import ledger and discard audit persistence.

data_imports holds one row per import run, discarded_records the rows
rejected during a run, import_analysis the pre-load identifier summary.
Database errors are logged here and re-raised; the ledger and discard sink
decide whether they are fatal.
"""

from typing import Any

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from src.core.models import (
    DiscardedRecord,
    DiscardReason,
    ImportAnalysis,
    ImportRun,
    ImportStatus,
)
from src.observability.logger import get_logger

from .base import DiscardStore, LedgerStore
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

# ImportRun attribute -> data_imports column
RUN_COLUMNS: dict[str, str] = {
    "source_url": "source_url",
    "total_records": "total_records",
    "successful_records": "successful_records",
    "failed_records": "failed_records",
    "discarded_records": "discarded_records",
    "status": "import_status",
    "error_message": "error_message",
}


def _row_to_run(row: dict[str, Any]) -> ImportRun:
    return ImportRun(
        id=row["id"],
        source_url=row["source_url"],
        total_records=row["total_records"] or 0,
        successful_records=row["successful_records"] or 0,
        failed_records=row["failed_records"] or 0,
        discarded_records=row.get("discarded_records") or 0,
        status=ImportStatus(row["import_status"]),
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_discard(row: dict[str, Any]) -> DiscardedRecord:
    return DiscardedRecord(
        id=str(row["id"]),
        original_data=row["original_data"] or {},
        discard_reason=DiscardReason(row["discard_reason"]),
        error_message=row["error_message"],
        file_name=row["file_name"],
        row_number=row["row_number"],
        import_id=row["import_id"],
        created_at=row["created_at"],
    )


class PostgresLedgerStore(LedgerStore):
    """
    ImportRun and ImportAnalysis rows in PostgreSQL.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def create_run(self, run: ImportRun) -> int:
        """
        Insert a new import run.

        Args:
            run: Run to insert (id is ignored)

        Returns:
            Generated import id

        Raises:
            psycopg.DatabaseError: If insert fails
        """
        insert_sql = """
            INSERT INTO data_imports (
                source_url, total_records, successful_records, failed_records,
                discarded_records, import_status, error_message
            ) VALUES (
                %(source_url)s, %(total_records)s, %(successful_records)s, %(failed_records)s,
                %(discarded_records)s, %(status)s, %(error_message)s
            ) RETURNING id;
        """
        try:
            with self.pool.transaction() as cur:
                cur.execute(
                    insert_sql,
                    {
                        "source_url": run.source_url,
                        "total_records": run.total_records,
                        "successful_records": run.successful_records,
                        "failed_records": run.failed_records,
                        "discarded_records": run.discarded_records,
                        "status": run.status.value,
                        "error_message": run.error_message,
                    },
                )
                import_id = cur.fetchone()["id"]
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to create import run: {e}")
            raise

        logger.debug(f"Created import run {import_id}")
        return import_id

    def update_run(self, import_id: int, fields: dict[str, Any]) -> None:
        """
        Apply a partial update to an import run.

        Args:
            import_id: Run to update
            fields: ImportRun attribute names and new values

        Raises:
            ValueError: If a field is not a ledger column
            psycopg.DatabaseError: If update fails
        """
        unknown = set(fields) - set(RUN_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown import run fields: {sorted(unknown)}")
        if not fields:
            return

        params = {
            name: value.value if isinstance(value, ImportStatus) else value
            for name, value in fields.items()
        }
        params["import_id"] = import_id

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(RUN_COLUMNS[name]), sql.Placeholder(name))
            for name in fields
        )
        query = sql.SQL(
            "UPDATE data_imports SET {}, updated_at = NOW() WHERE id = %(import_id)s"
        ).format(assignments)

        try:
            self.pool.execute(query, params)
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to update import run {import_id}: {e}")
            raise

    def get_run(self, import_id: int) -> ImportRun | None:
        result = self.pool.fetch_all(
            "SELECT * FROM data_imports WHERE id = %s", (import_id,)
        )
        return _row_to_run(result[0]) if result else None

    def list_runs(self, limit: int = 10) -> list[ImportRun]:
        result = self.pool.fetch_all(
            "SELECT * FROM data_imports ORDER BY created_at DESC, id DESC LIMIT %s", (limit,)
        )
        return [_row_to_run(row) for row in result]

    def insert_analysis(self, analysis: ImportAnalysis) -> None:
        """
        Store the pre-load analysis of an import run.

        Raises:
            psycopg.DatabaseError: If insert fails
        """
        insert_sql = """
            INSERT INTO import_analysis (
                import_id, total_records, records_with_ids, records_without_ids,
                percentage_with_ids, percentage_without_ids, sample_records
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        try:
            self.pool.execute(
                insert_sql,
                (
                    analysis.import_id,
                    analysis.total_records,
                    analysis.records_with_ids,
                    analysis.records_without_ids,
                    analysis.percentage_with_ids,
                    analysis.percentage_without_ids,
                    Jsonb(analysis.sample_records),
                ),
            )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to record import analysis: {e}")
            raise

    def get_analysis(self, import_id: int) -> ImportAnalysis | None:
        result = self.pool.fetch_all(
            "SELECT * FROM import_analysis WHERE import_id = %s ORDER BY created_at DESC LIMIT 1",
            (import_id,),
        )
        if not result:
            return None
        row = result[0]
        return ImportAnalysis(
            import_id=row["import_id"],
            total_records=row["total_records"],
            records_with_ids=row["records_with_ids"],
            records_without_ids=row["records_without_ids"],
            sample_records=row["sample_records"] or [],
            created_at=row["created_at"],
        )

    def clear_analysis(self) -> None:
        self.pool.execute("DELETE FROM import_analysis")


class PostgresDiscardStore(DiscardStore):
    """
    Append-only discarded_records table in PostgreSQL.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def insert_discards(self, discards: list[DiscardedRecord]) -> int:
        """
        Insert discards in one transaction.

        Args:
            discards: Discards to append

        Returns:
            Number of discards inserted

        Raises:
            psycopg.DatabaseError: If insert fails
        """
        if not discards:
            return 0

        insert_sql = """
            INSERT INTO discarded_records (
                original_data, discard_reason, error_message,
                file_name, row_number, import_id, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        data_tuples = [
            (
                Jsonb(d.original_data),
                d.discard_reason.value,
                d.error_message,
                d.file_name,
                d.row_number,
                d.import_id,
                d.created_at,
            )
            for d in discards
        ]

        try:
            with self.pool.transaction() as cur:
                cur.executemany(insert_sql, data_tuples)
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert {len(discards)} discarded records: {e}")
            raise

        logger.debug(f"Inserted {len(discards)} discarded records")
        return len(discards)

    def clear_discards(self) -> None:
        self.pool.execute("DELETE FROM discarded_records")

    def count_by_reason(self, import_id: int | None = None) -> dict[str, int]:
        if import_id is None:
            result = self.pool.fetch_all(
                "SELECT discard_reason, COUNT(*) AS total FROM discarded_records "
                "GROUP BY discard_reason"
            )
        else:
            result = self.pool.fetch_all(
                "SELECT discard_reason, COUNT(*) AS total FROM discarded_records "
                "WHERE import_id = %s GROUP BY discard_reason",
                (import_id,),
            )
        return {row["discard_reason"]: int(row["total"]) for row in result}

    def count_by_field(self, import_id: int, field: str, limit: int = 10) -> list[tuple[str, int]]:
        if field not in self.GROUPABLE_FIELDS:
            raise ValueError(f"Cannot group discards by {field}")

        query = sql.SQL(
            "SELECT COALESCE({col}, 'N/A') AS value, COUNT(*) AS total FROM discarded_records "
            "WHERE import_id = %s GROUP BY 1 ORDER BY total DESC, value LIMIT %s"
        ).format(col=sql.Identifier(field))
        return [
            (row["value"], int(row["total"]))
            for row in self.pool.fetch_all(query, (import_id, limit))
        ]

    def list_discards(
        self,
        import_id: int | None = None,
        reason: DiscardReason | None = None,
        limit: int = 10,
    ) -> list[DiscardedRecord]:
        conditions = []
        params: dict[str, Any] = {"limit": limit}
        if import_id is not None:
            conditions.append(sql.SQL("import_id = %(import_id)s"))
            params["import_id"] = import_id
        if reason is not None:
            conditions.append(sql.SQL("discard_reason = %(reason)s"))
            params["reason"] = reason.value

        where = sql.SQL("WHERE ") + sql.SQL(" AND ").join(conditions) if conditions else sql.SQL("")
        query = sql.SQL(
            "SELECT * FROM discarded_records {} ORDER BY created_at DESC LIMIT %(limit)s"
        ).format(where)

        return [_row_to_discard(row) for row in self.pool.fetch_all(query, params)]
