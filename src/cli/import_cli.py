"""
Command-line interface for the unclaimed-property import.

Usage:
    python -m src.cli.import_cli start [--config <yaml>] [--source-url <url> ...] [options]
    python -m src.cli.import_cli status <import_id>
    python -m src.cli.import_cli cancel <import_id>
    python -m src.cli.import_cli init-db
    python -m src.cli.import_cli search --name <owner> [--min-amount N] [--city C] | --id <property_id>
    python -m src.cli.import_cli discards [--import-id N] [--reason R] [--limit N]
    python -m src.cli.import_cli recent [--limit N]

Action results are printed to stdout as JSON; logs go to stderr.
"""

import argparse
import json
import signal
import sys
import threading
from datetime import datetime
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from src.batch import ImportService
from src.core.config import load_import_config
from src.core.models import DiscardReason, ImportResponse, PropertySearch
from src.observability.logger import get_logger, set_log_level
from src.observability.metrics import start_metrics_server
from src.warehouse.audit import PostgresDiscardStore, PostgresLedgerStore
from src.warehouse.base import DiscardStore, LedgerStore
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.memory import InMemoryDiscardStore, InMemoryLedgerStore, InMemoryPropertyStore
from src.warehouse.schema_mgmt import SchemaManager
from src.warehouse.upsert import PostgresPropertyStore

logger = get_logger(__name__)


def format_timestamp(ts: datetime | str | None) -> str:
    """Format timestamp for display."""
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def open_pool(args) -> DatabaseConnectionPool:
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def build_stores(args):
    """
    Build the property, ledger and discard stores for a command.

    Returns:
        (property_store, ledger_store, discard_store, pool); pool is None in dry-run mode
    """
    if getattr(args, "dry_run", False):
        logger.info("DRY RUN MODE: records are loaded into memory only")
        return InMemoryPropertyStore(), InMemoryLedgerStore(), InMemoryDiscardStore(), None

    pool = open_pool(args)
    return PostgresPropertyStore(pool), PostgresLedgerStore(pool), PostgresDiscardStore(pool), pool


def build_service(args) -> tuple[ImportService, DatabaseConnectionPool | None]:
    config = load_import_config(args.config)

    overrides: dict[str, Any] = {}
    if getattr(args, "source_url", None):
        overrides["source_urls"] = args.source_url
    if getattr(args, "download_mode", None):
        overrides["download_mode"] = args.download_mode
    if getattr(args, "batch_size", None):
        overrides["batch_size"] = args.batch_size
    if getattr(args, "keep_downloads", False):
        overrides["keep_downloads"] = True
    if overrides:
        config = config.model_validate({**config.model_dump(), **overrides})

    property_store, ledger_store, discard_store, pool = build_stores(args)
    return ImportService(config, property_store, ledger_store, discard_store), pool


def finish(response: ImportResponse) -> int:
    emit(response.to_payload())
    return 0 if response.success else 1


def start_command(args) -> int:
    """
    Run a full import.

    Ctrl-C requests a cooperative cancel: the current batch completes and
    the run is finalized as cancelled.
    """
    if args.metrics_port:
        start_metrics_server(args.metrics_port)
        logger.info(f"Serving metrics on port {args.metrics_port}")

    service, pool = build_service(args)

    cancel_event = threading.Event()

    def request_cancel(signum, frame):
        logger.warning("Interrupt received; cancelling after the current batch")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    try:
        return finish(service.start(cancel_event=cancel_event))
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if pool is not None:
            pool.close()


def status_command(args) -> int:
    service, pool = build_service(args)
    try:
        return finish(service.status(args.import_id))
    finally:
        if pool is not None:
            pool.close()


def cancel_command(args) -> int:
    service, pool = build_service(args)
    try:
        return finish(service.cancel(args.import_id))
    finally:
        if pool is not None:
            pool.close()


def init_db_command(args) -> int:
    pool = open_pool(args)
    try:
        SchemaManager(pool).ensure_schema()
    finally:
        pool.close()
    emit({"success": True, "message": "Database schema initialized"})
    return 0


def search_command(args) -> int:
    criteria = None
    if not args.id:
        try:
            criteria = PropertySearch(
                name=args.name or "",
                min_amount=args.min_amount,
                max_amount=args.max_amount,
                city=args.city,
                property_type=args.property_type,
                limit=args.limit,
            )
        except ValidationError as e:
            error = e.errors()[0]
            emit({"success": False, "message": f"Invalid search {error['loc'][0]}: {error['msg']}"})
            return 1

    pool = open_pool(args)
    try:
        store = PostgresPropertyStore(pool)
        if criteria is None:
            row = store.get(args.id)
            emit({"success": row is not None, "property": row})
            return 0 if row is not None else 1
        emit({"success": True, "results": store.search(criteria)})
        return 0
    finally:
        pool.close()


def build_discard_report(
    discard_store: DiscardStore,
    ledger_store: LedgerStore,
    import_id: int | None = None,
    reason: DiscardReason | None = None,
    limit: int = 10,
) -> dict[str, Any]:
    """
    Collect everything the discards command prints.

    For a single run the report also carries its ID analysis and the
    discards grouped by file and by error message.
    """
    report: dict[str, Any] = {
        "counts": discard_store.count_by_reason(import_id),
        "entries": discard_store.list_discards(import_id, reason, limit),
        "analysis": None,
        "by_file": [],
        "by_error": [],
    }
    if import_id is not None:
        report["analysis"] = ledger_store.get_analysis(import_id)
        report["by_file"] = discard_store.count_by_field(import_id, "file_name", limit)
        report["by_error"] = discard_store.count_by_field(import_id, "error_message", limit)
    return report


def print_discard_report(report: dict[str, Any], reason: DiscardReason | None = None) -> None:
    counts = report["counts"]
    total = sum(counts.values())
    print(f"\n{'=' * 80}")
    print("DISCARDED RECORDS SUMMARY")
    print(f"{'=' * 80}\n")

    analysis = report["analysis"]
    if analysis is not None:
        print(f"Rows analyzed:       {analysis.total_records:,}")
        print(
            f"Records with IDs:    {analysis.records_with_ids:,}  "
            f"({analysis.percentage_with_ids:.2f}%)"
        )
        print(
            f"Records without IDs: {analysis.records_without_ids:,}  "
            f"({analysis.percentage_without_ids:.2f}%)\n"
        )

    print(f"Total discarded: {total:,}")
    for name, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
        share = count / total * 100 if total else 0
        print(f"  {name:<25} {count:>10,}  ({share:.1f}%)")

    if report["by_file"]:
        print("\nBY FILE")
        print(f"{'-' * 80}")
        for file_name, count in report["by_file"]:
            print(f"  {file_name:<50} {count:>10,}")

    if report["by_error"]:
        print("\nTOP ERROR MESSAGES")
        print(f"{'-' * 80}")
        for message, count in report["by_error"]:
            print(f'  "{message[:100]}": {count:,}')

    entries = report["entries"]
    if entries:
        title = f"RECENT {reason.value.upper()} RECORDS" if reason else "RECENT DISCARDED RECORDS"
        print(f"\n{title}")
        print(f"{'-' * 80}")
        for entry in entries:
            print(
                f"{format_timestamp(entry.created_at)}  {entry.discard_reason.value:<24} "
                f"{entry.file_name or 'N/A'}:{entry.row_number or '-'}"
            )
            if entry.error_message:
                print(f"    Error: {entry.error_message}")
            print(f"    Data: {json.dumps(entry.original_data, default=str)[:200]}")
    print()


def discards_command(args) -> int:
    """
    Print a discard report: totals per reason, the run's ID analysis and
    grouped counts when --import-id is given, then the most recent entries.
    """
    reason = DiscardReason(args.reason) if args.reason else None

    pool = open_pool(args)
    try:
        report = build_discard_report(
            PostgresDiscardStore(pool), PostgresLedgerStore(pool), args.import_id, reason, args.limit
        )
    finally:
        pool.close()

    print_discard_report(report, reason)
    return 0


def recent_command(args) -> int:
    pool = open_pool(args)
    try:
        runs = PostgresLedgerStore(pool).list_runs(args.limit)
    finally:
        pool.close()

    emit([run.model_dump(mode="json") for run in runs])
    return 0


def add_db_arguments(parser: argparse.ArgumentParser) -> None:
    """Database connection arguments; unset values fall back to DB_* variables."""
    parser.add_argument("--db-host", default=None, help="Database host (env: DB_HOST)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (env: DB_PORT)")
    parser.add_argument("--db-name", default=None, help="Database name (env: DB_NAME)")
    parser.add_argument("--db-user", default=None, help="Database user (env: DB_USER)")
    parser.add_argument("--db-password", default=None, help="Database password (env: DB_PASSWORD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="California unclaimed-property import",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create tables and indexes
  python -m src.cli.import_cli init-db

  # Import the default archive, streaming to disk
  python -m src.cli.import_cli start --download-mode disk

  # Import two archives into memory stores only
  python -m src.cli.import_cli start --dry-run \\
      --source-url https://dpupd.sco.ca.gov/04_From_500_To_Beyond.zip \\
      --source-url https://dpupd.sco.ca.gov/03_From_100_To_Below_500.zip

  # Check progress of, or cancel, a running import
  python -m src.cli.import_cli status 12
  python -m src.cli.import_cli cancel 12
        """
    )
    parser.add_argument("--log-level", default=None, help="Log level (env: LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    start_parser = subparsers.add_parser("start", help="Run a full import")
    start_parser.add_argument("--config", default=None, help="Path to import YAML configuration")
    start_parser.add_argument(
        "--source-url", action="append", help="Archive URL (repeatable; overrides configuration)"
    )
    start_parser.add_argument("--download-mode", choices=["memory", "disk"], default=None)
    start_parser.add_argument("--batch-size", type=int, default=None)
    start_parser.add_argument(
        "--keep-downloads", action="store_true", help="Keep downloaded archives after a disk-mode run"
    )
    start_parser.add_argument(
        "--dry-run", action="store_true", help="Load into in-memory stores, not the database"
    )
    start_parser.add_argument(
        "--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port"
    )
    add_db_arguments(start_parser)
    start_parser.set_defaults(func=start_command)

    for name, handler, help_text in (
        ("status", status_command, "Show progress of an import"),
        ("cancel", cancel_command, "Cancel a running import"),
    ):
        action_parser = subparsers.add_parser(name, help=help_text)
        action_parser.add_argument("import_id", type=int, help="Import ID")
        action_parser.add_argument("--config", default=None, help=argparse.SUPPRESS)
        add_db_arguments(action_parser)
        action_parser.set_defaults(func=handler)

    init_parser = subparsers.add_parser("init-db", help="Create import tables and indexes")
    add_db_arguments(init_parser)
    init_parser.set_defaults(func=init_db_command)

    search_parser = subparsers.add_parser("search", help="Search imported properties")
    search_parser.add_argument("--name", default=None, help="Owner name (substring match)")
    search_parser.add_argument("--min-amount", type=float, default=None)
    search_parser.add_argument("--max-amount", type=float, default=None)
    search_parser.add_argument("--city", default=None)
    search_parser.add_argument("--property-type", default=None)
    search_parser.add_argument("--limit", type=int, default=50)
    search_parser.add_argument("--id", default=None, help="Fetch a single property by ID instead")
    add_db_arguments(search_parser)
    search_parser.set_defaults(func=search_command)

    discards_parser = subparsers.add_parser("discards", help="Report discarded records")
    discards_parser.add_argument("--import-id", type=int, default=None)
    discards_parser.add_argument(
        "--reason", choices=[reason.value for reason in DiscardReason], default=None
    )
    discards_parser.add_argument("--limit", type=int, default=10)
    add_db_arguments(discards_parser)
    discards_parser.set_defaults(func=discards_command)

    recent_parser = subparsers.add_parser("recent", help="List recent import runs")
    recent_parser.add_argument("--limit", type=int, default=10)
    add_db_arguments(recent_parser)
    recent_parser.set_defaults(func=recent_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        set_log_level(args.log_level)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        emit({"success": False, "message": str(e)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
