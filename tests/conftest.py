"""
Pytest configuration and fixtures for unclaimed-import tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import csv
import io
import zipfile
from typing import Callable, Generator

import pytest
from testcontainers.postgres import PostgresContainer

from src.core.config import ImportConfig
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.memory import InMemoryDiscardStore, InMemoryLedgerStore, InMemoryPropertyStore
from src.warehouse.schema_mgmt import SchemaManager


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_importer",
        password="test_password",
        dbname="test_unclaimed",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available for integration tests: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Connection pool against the test container, with the import schema created

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_unclaimed",
        user="test_importer",
        password="test_password",
    )
    pool.open()
    SchemaManager(pool).ensure_schema()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Provide a clean database by truncating all import tables before each test

    Yields:
        Open DatabaseConnectionPool with empty tables
    """
    db_pool.execute(
        "TRUNCATE TABLE import_analysis, discarded_records, unclaimed_properties, "
        "data_imports RESTART IDENTITY CASCADE"
    )

    yield db_pool


# =======================
# IN-MEMORY STORES
# =======================

@pytest.fixture
def property_store() -> InMemoryPropertyStore:
    return InMemoryPropertyStore()


@pytest.fixture
def ledger_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def discard_store() -> InMemoryDiscardStore:
    return InMemoryDiscardStore()


# =======================
# ARCHIVE FIXTURES
# =======================

def build_csv(header: list[str], rows: list[list[str]]) -> bytes:
    """Serialize rows as CSV bytes with a header line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def build_zip(members: dict[str, bytes]) -> bytes:
    """Build ZIP bytes holding the given members."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def make_csv() -> Callable[[list[str], list[list[str]]], bytes]:
    return build_csv


@pytest.fixture
def make_zip() -> Callable[[dict[str, bytes]], bytes]:
    return build_zip


class StaticFetcher:
    """Archive fetcher returning prepared archives instead of downloading."""

    def __init__(self, archives: list[bytes]):
        self.archives = archives
        self.calls: list[list[str]] = []

    def fetch_all(self, urls, download_dir=None, reuse_existing=True):
        self.calls.append(list(urls))
        return list(self.archives)


@pytest.fixture
def static_fetcher() -> Callable[..., StaticFetcher]:
    def factory(*archives: bytes) -> StaticFetcher:
        return StaticFetcher(list(archives))
    return factory


@pytest.fixture
def import_config(tmp_path) -> ImportConfig:
    """Memory-mode configuration pointing at a placeholder URL."""
    return ImportConfig(
        source_urls=["https://data.example.test/properties.zip"],
        download_dir=tmp_path / "downloads",
        batch_size=250,
    )


