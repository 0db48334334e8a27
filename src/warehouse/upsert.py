"""
Idempotent upsert operations for the unclaimed_properties table.

A batch is written as one multi-row INSERT ... ON CONFLICT (id) statement,
so a batch either lands completely or not at all.
"""

from typing import Any

from psycopg import sql

from src.core.models import PROPERTY_COLUMNS, PropertySearch, UnclaimedPropertyRecord
from src.observability.logger import get_logger

from .base import PropertyStore
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

PROPERTY_TABLE = "unclaimed_properties"

CONFLICT_POLICIES = ("update", "ignore")


def build_upsert_statement(row_count: int, conflict_policy: str = "update") -> sql.Composed:
    """
    Build a multi-row upsert for row_count property rows.

    Args:
        row_count: Number of VALUES tuples
        conflict_policy: "update" (DO UPDATE) or "ignore" (DO NOTHING)

    Returns:
        Composed statement with one placeholder per column per row

    Raises:
        ValueError: If the policy is unknown or row_count < 1
    """
    if conflict_policy not in CONFLICT_POLICIES:
        raise ValueError(f"Unknown conflict policy: {conflict_policy}")
    if row_count < 1:
        raise ValueError("Cannot build an upsert for an empty batch")

    row_placeholder = sql.SQL("({})").format(
        sql.SQL(", ").join([sql.Placeholder()] * len(PROPERTY_COLUMNS))
    )

    if conflict_policy == "update":
        updates = sql.SQL(", ").join(
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(column))
            for column in PROPERTY_COLUMNS
            if column != "id"
        )
        on_conflict = sql.SQL("ON CONFLICT (id) DO UPDATE SET {}, updated_at = NOW()").format(updates)
    else:
        on_conflict = sql.SQL("ON CONFLICT (id) DO NOTHING")

    return sql.SQL(
        "INSERT INTO {table} ({columns}) VALUES {rows} {on_conflict} RETURNING id"
    ).format(
        table=sql.Identifier(PROPERTY_TABLE),
        columns=sql.SQL(", ").join(sql.Identifier(column) for column in PROPERTY_COLUMNS),
        rows=sql.SQL(", ").join([row_placeholder] * row_count),
        on_conflict=on_conflict,
    )


class PostgresPropertyStore(PropertyStore):
    """
    Property table backed by PostgreSQL.

    Re-submitting a batch never creates duplicate rows: with the update
    policy existing rows are overwritten, with ignore they are left alone.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize property store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def upsert_batch(
        self, records: list[UnclaimedPropertyRecord], conflict_policy: str = "update"
    ) -> list[str]:
        """
        Upsert a batch of property records in a single transaction.

        Args:
            records: Records with pairwise distinct ids
            conflict_policy: "update" or "ignore"

        Returns:
            Ids of the rows inserted or updated; rows skipped by the ignore
            policy are not included

        Raises:
            psycopg.Error: If the statement fails (the transaction is rolled back)
        """
        if not records:
            return []

        statement = build_upsert_statement(len(records), conflict_policy)
        params = [value for record in records for value in record.column_values()]

        with self.pool.transaction() as cur:
            cur.execute(statement, params)
            return [row["id"] for row in cur.fetchall()]

    def truncate(self) -> None:
        self.pool.execute(
            sql.SQL("TRUNCATE TABLE {} RESTART IDENTITY CASCADE").format(
                sql.Identifier(PROPERTY_TABLE)
            )
        )
        logger.info(f"Truncated {PROPERTY_TABLE}")

    def count(self) -> int:
        result = self.pool.fetch_all(
            sql.SQL("SELECT COUNT(*) AS total FROM {}").format(sql.Identifier(PROPERTY_TABLE))
        )
        return int(result[0]["total"]) if result else 0

    def get(self, property_id: str) -> dict[str, Any] | None:
        result = self.pool.fetch_all(
            sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(PROPERTY_TABLE)),
            (property_id,),
        )
        return self._to_plain(result[0]) if result else None

    def search(self, criteria: PropertySearch) -> list[dict[str, Any]]:
        """
        Search by owner name with optional balance, city and type filters.

        Args:
            criteria: Search filters

        Returns:
            Matching rows ordered by current_cash_balance descending
        """
        conditions = [sql.SQL("owner_name ILIKE %(name)s")]
        params: dict[str, Any] = {"name": f"%{criteria.name}%", "limit": criteria.limit}

        if criteria.min_amount is not None:
            conditions.append(sql.SQL("current_cash_balance >= %(min_amount)s"))
            params["min_amount"] = criteria.min_amount
        if criteria.max_amount is not None:
            conditions.append(sql.SQL("current_cash_balance <= %(max_amount)s"))
            params["max_amount"] = criteria.max_amount
        if criteria.city:
            conditions.append(sql.SQL("owner_city ILIKE %(city)s"))
            params["city"] = f"%{criteria.city}%"
        if criteria.property_type:
            conditions.append(sql.SQL("property_type = %(property_type)s"))
            params["property_type"] = criteria.property_type

        query = sql.SQL(
            "SELECT * FROM {table} WHERE {conditions} "
            "ORDER BY current_cash_balance DESC, id LIMIT %(limit)s"
        ).format(
            table=sql.Identifier(PROPERTY_TABLE),
            conditions=sql.SQL(" AND ").join(conditions),
        )

        return [self._to_plain(row) for row in self.pool.fetch_all(query, params)]

    @staticmethod
    def _to_plain(row: dict[str, Any]) -> dict[str, Any]:
        # DECIMAL columns come back as Decimal
        return {
            key: float(value) if key in ("cash_reported", "shares_reported", "current_cash_balance")
            and value is not None else value
            for key, value in row.items()
        }
