"""
DDL for the import tables.

SchemaManager creates the property table, the import ledger and the
discard/analysis side tables if they do not exist yet.
"""

from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS data_imports (
        id SERIAL PRIMARY KEY,
        source_url TEXT NOT NULL,
        total_records INTEGER NOT NULL DEFAULT 0,
        successful_records INTEGER DEFAULT 0,
        failed_records INTEGER DEFAULT 0,
        discarded_records INTEGER DEFAULT 0,
        import_status TEXT DEFAULT 'pending',
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS unclaimed_properties (
        id TEXT PRIMARY KEY,
        property_type TEXT,
        cash_reported DECIMAL(15,2) DEFAULT 0,
        shares_reported DECIMAL(15,2) DEFAULT 0,
        name_of_securities_reported TEXT,
        number_of_owners TEXT DEFAULT '1',
        owner_name TEXT NOT NULL,
        owner_street_1 TEXT,
        owner_street_2 TEXT,
        owner_street_3 TEXT,
        owner_city TEXT,
        owner_state TEXT,
        owner_zip TEXT,
        owner_country_code TEXT,
        current_cash_balance DECIMAL(15,2) DEFAULT 0,
        number_of_pending_claims INTEGER DEFAULT 0,
        number_of_paid_claims INTEGER DEFAULT 0,
        holder_name TEXT NOT NULL,
        holder_street_1 TEXT,
        holder_street_2 TEXT,
        holder_street_3 TEXT,
        holder_city TEXT,
        holder_state TEXT,
        holder_zip TEXT,
        cusip TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_unclaimed_properties_owner_name
    ON unclaimed_properties USING gin(to_tsvector('english', owner_name))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_unclaimed_properties_holder_name
    ON unclaimed_properties USING gin(to_tsvector('english', holder_name))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_unclaimed_properties_amount
    ON unclaimed_properties (current_cash_balance)
    """,
    """
    CREATE TABLE IF NOT EXISTS discarded_records (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        original_data JSONB NOT NULL,
        discard_reason TEXT NOT NULL,
        error_message TEXT,
        file_name TEXT,
        row_number INTEGER,
        import_id INTEGER REFERENCES data_imports(id) ON DELETE CASCADE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_discarded_records_import
    ON discarded_records (import_id, discard_reason)
    """,
    """
    CREATE TABLE IF NOT EXISTS import_analysis (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        import_id INTEGER REFERENCES data_imports(id) ON DELETE CASCADE,
        total_records INTEGER NOT NULL,
        records_with_ids INTEGER NOT NULL,
        records_without_ids INTEGER NOT NULL,
        percentage_with_ids NUMERIC(5,2),
        percentage_without_ids NUMERIC(5,2),
        sample_records JSONB,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

MANAGED_TABLES = ("import_analysis", "discarded_records", "unclaimed_properties", "data_imports")


class SchemaManager:
    """
    Creates and drops the import tables.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize schema manager.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def ensure_schema(self) -> None:
        """
        Create every table and index that does not exist yet.

        Raises:
            psycopg.DatabaseError: If a statement fails (nothing is committed)
        """
        with self.pool.transaction() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        logger.info("Import schema is up to date")

    def table_exists(self, table_name: str) -> bool:
        result = self.pool.fetch_all(
            "SELECT to_regclass(%s) IS NOT NULL AS present", (f"public.{table_name}",)
        )
        return bool(result and result[0]["present"])

    def drop_schema(self) -> None:
        """Drop every managed table. Used by tests to start from scratch."""
        with self.pool.transaction() as cur:
            for table in MANAGED_TABLES:
                cur.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
        logger.info("Dropped import schema")
