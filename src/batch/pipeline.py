"""
Import pipeline orchestration.

Coordinates the flow: fetch → extract → count → create ledger entry →
truncate → parse + normalize + upsert each file → finalize ledger
"""

import shutil
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from src.core.config import ImportConfig
from src.core.errors import ArchiveError, BatchInsertError, ImportCancelled
from src.core.models import DiscardReason, ImportAnalysis, ImportStatus
from src.core.normalization import NormalizedRecord, RecordNormalizer, has_source_id
from src.observability.logger import get_logger, log_operation
from src.observability.metrics import increment_counter, record_run_finished, records_processed_total
from src.warehouse.base import DiscardStore, LedgerStore, PropertyStore

from .ledger import ImportLedger, resolve_status
from .readers import ArchiveExtractor, ArchiveFetcher, CsvEntry, CSVStreamReader
from .writers import BatchPropertyWriter, DiscardSink

logger = get_logger(__name__)


class PipelineState(str, Enum):
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    COUNTING = "counting"
    LEDGER_CREATED = "ledger_created"
    TRUNCATING = "truncating"
    LOADING = "loading"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ImportSummary:
    """
    Result of one pipeline run.

    Counter conservation holds for every run that loaded all of its files:
    successful_records + failed_records + discarded_records == total_records.
    """

    import_id: int | None = None
    status: ImportStatus = ImportStatus.PENDING
    total_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    discarded_records: int = 0
    files_processed: int = 0
    synthetic_ids: int = 0
    discards_by_reason: dict[str, int] = field(default_factory=dict)
    error_message: str | None = None

    @property
    def counters(self) -> dict[str, int]:
        return {
            "successful_records": self.successful_records,
            "failed_records": self.failed_records,
            "discarded_records": self.discarded_records,
        }


class ImportPipeline:
    """
    Full-replace import of the State Controller's property files.

    Flow:
    1. Download every configured archive (memory or disk mode)
    2. List the CSV members of each archive
    3. Count data rows and analyse identifier coverage
    4. Register the run, clear the property and audit tables
    5. Stream each file through the normalizer into bounded upsert batches
    6. Finalize the ledger exactly once
    """

    def __init__(
        self,
        config: ImportConfig,
        property_store: PropertyStore,
        ledger_store: LedgerStore,
        discard_store: DiscardStore,
        fetcher: ArchiveFetcher | None = None,
        extractor: ArchiveExtractor | None = None,
    ):
        """
        Initialize import pipeline.

        Args:
            config: Import settings
            property_store: Destination property table
            ledger_store: Persistence for import runs
            discard_store: Persistence for discarded rows
            fetcher: Archive fetcher (built from config.fetch if omitted)
            extractor: Archive extractor (built from config if omitted)
        """
        self.config = config
        self.property_store = property_store
        self.fetcher = fetcher or ArchiveFetcher(config.fetch)
        self.extractor = extractor or ArchiveExtractor(extract_dir=self.extract_root)
        self.reader = CSVStreamReader(encoding=config.csv_encoding)
        self.ledger = ImportLedger(ledger_store)
        self.discards = DiscardSink(discard_store, flush_size=config.discard_flush_size)
        self.writer = BatchPropertyWriter(property_store, self.discards, config.conflict_policy)

        self.state = PipelineState.FETCHING
        self.import_id: int | None = None
        self.summary = ImportSummary()
        self._archives: list[bytes | Path] = []

    @property
    def extract_root(self) -> Path:
        return self.config.download_dir / "extracted"

    def run(self, cancel_event: threading.Event | None = None) -> ImportSummary:
        """
        Execute the full import.

        Args:
            cancel_event: Optional flag checked between batches

        Returns:
            ImportSummary of the finished (or cancelled) run

        Raises:
            TransportError, DownloadError: If an archive could not be retrieved
            ArchiveError: If an archive is unreadable or no CSV files were found
            LedgerError: If the run could not be registered
            Any exception that aborted loading, after the run was marked failed
        """
        started = time.time()
        self.summary = ImportSummary()

        try:
            entries = self._acquire()

            self.state = PipelineState.COUNTING
            analysis = self._count(entries)
            self.summary.total_records = analysis.total_records

            self.import_id = self.ledger.create(analysis.total_records, self.config.source_label)
            self.summary.import_id = self.import_id
            self.state = PipelineState.LEDGER_CREATED
        except Exception as e:
            self.state = PipelineState.FAILED
            self.summary.status = ImportStatus.FAILED
            self.summary.error_message = str(e)
            record_run_finished(ImportStatus.FAILED.value, time.time() - started)
            raise

        try:
            self._load(entries, analysis, cancel_event)
        except Exception as e:
            self.state = PipelineState.FAILED
            logger.error(f"Import {self.import_id} failed: {e}")
            self.discards.flush()
            self._refresh_counters()
            self.summary.status = ImportStatus.FAILED
            self.summary.error_message = str(e)
            self.ledger.finalize(
                self.import_id, ImportStatus.FAILED, error_message=str(e), **self.summary.counters
            )
            raise
        finally:
            record_run_finished(self.summary.status.value, time.time() - started)

        if self.summary.status != ImportStatus.CANCELLED:
            self.cleanup()
        return self.summary

    def _acquire(self) -> list[CsvEntry]:
        self.state = PipelineState.FETCHING
        with log_operation("Fetching archives", logger=logger, mode=self.config.download_mode):
            if self.config.download_mode == "disk":
                self._archives = self.fetcher.fetch_all(
                    self.config.source_urls,
                    download_dir=self.config.download_dir,
                    reuse_existing=self.config.reuse_downloads,
                )
            else:
                self._archives = self.fetcher.fetch_all(self.config.source_urls)

        self.state = PipelineState.EXTRACTING
        if self.config.download_mode == "disk" and not self.config.reuse_downloads:
            shutil.rmtree(self.extract_root, ignore_errors=True)

        entries: list[CsvEntry] = []
        with log_operation("Extracting archives", logger=logger, archives=len(self._archives)):
            for archive in self._archives:
                entries.extend(self.extractor.list_csv_entries(archive))

        if not entries:
            raise ArchiveError("No CSV files found in ZIP archive")

        logger.info(f"Found {len(entries)} CSV files to process")
        return entries

    def _count(self, entries: list[CsvEntry]) -> ImportAnalysis:
        """Count data rows of every file and analyse identifier coverage."""
        analysis = ImportAnalysis()

        with log_operation("Counting records", logger=logger, files=len(entries)):
            for entry in entries:
                file_total = 0
                for row in self.reader.read(entry.open()):
                    file_total += 1
                    if not row.ok:
                        continue
                    values = row.values or {}
                    if has_source_id(values):
                        analysis.records_with_ids += 1
                    else:
                        analysis.records_without_ids += 1
                        analysis.add_sample({
                            "file": entry.name,
                            "owner_name": values.get("OWNER_NAME"),
                            "current_cash_balance": values.get("CURRENT_CASH_BALANCE"),
                            "holder_name": values.get("HOLDER_NAME"),
                            "property_type": values.get("PROPERTY_TYPE"),
                        })
                analysis.total_records += file_total
                logger.info(f"{entry.name}: {file_total:,} records")

        logger.info(
            f"Total records to import: {analysis.total_records:,} "
            f"({analysis.percentage_without_ids}% without property id)"
        )
        return analysis

    def _load(
        self,
        entries: list[CsvEntry],
        analysis: ImportAnalysis,
        cancel_event: threading.Event | None,
    ) -> None:
        import_id = self.import_id

        self.state = PipelineState.TRUNCATING
        self._truncate()
        analysis.import_id = import_id
        self.ledger.record_analysis(analysis)
        self.ledger.update(import_id, status=ImportStatus.IN_PROGRESS)

        self.state = PipelineState.LOADING
        normalizer = RecordNormalizer()
        cancelled = False
        try:
            for index, entry in enumerate(entries, start=1):
                with log_operation(
                    f"Loading file {index}/{len(entries)}", logger=logger, file_name=entry.name
                ):
                    self._load_file(entry, normalizer, cancel_event)
                self.summary.files_processed += 1
                self._publish_progress()
            cancelled = self._cancel_requested(cancel_event)
        except ImportCancelled:
            cancelled = True
            logger.info(f"Import {import_id} cancelled; stopping after current batch")

        self.state = PipelineState.FINALIZING
        self.discards.flush()
        self._refresh_counters()
        self.summary.synthetic_ids = normalizer.id_generator.issued
        status = resolve_status(self.summary.failed_records, cancelled=cancelled)
        self.summary.status = status
        self.ledger.finalize(import_id, status, **self.summary.counters)
        self.state = PipelineState.DONE

        logger.info(
            f"Import {import_id} {status.value}: {self.summary.successful_records:,} written, "
            f"{self.summary.failed_records:,} failed, {self.summary.discarded_records:,} discarded "
            f"of {self.summary.total_records:,} ({self.summary.synthetic_ids:,} generated ids)"
        )

    def _truncate(self) -> None:
        try:
            self.property_store.truncate()
        except Exception as e:
            # The table may not exist yet on a first run
            logger.warning(f"Could not truncate property table: {e}")
        self.discards.clear()
        self.ledger.clear_analysis()

    def _load_file(
        self,
        entry: CsvEntry,
        normalizer: RecordNormalizer,
        cancel_event: threading.Event | None,
    ) -> None:
        batch: list[NormalizedRecord] = []

        for row in self.reader.read(entry.open()):
            outcome = normalizer.normalize(row, entry.name)
            if isinstance(outcome, NormalizedRecord):
                batch.append(outcome)
            else:
                self.discards.record_discard(outcome, self.import_id)
                increment_counter(records_processed_total, outcome="discarded")

            if len(batch) >= self.config.batch_size:
                self._commit(batch)
                batch = []
                if self._cancel_requested(cancel_event):
                    raise ImportCancelled(f"Import {self.import_id} cancelled")

        if batch:
            self._commit(batch)

    def _commit(self, batch: list[NormalizedRecord]) -> None:
        try:
            result = self.writer.commit(batch, self.import_id)
            self.summary.successful_records += result.written
            increment_counter(records_processed_total, result.written, outcome="written")
            increment_counter(records_processed_total, result.duplicates, outcome="discarded")
        except BatchInsertError as e:
            self.summary.failed_records += e.record_count
            increment_counter(records_processed_total, e.record_count, outcome="failed")

        self.discards.flush()
        self._publish_progress()

    def _refresh_counters(self) -> None:
        self.summary.discarded_records = self.discards.total(exclude=(DiscardReason.INSERTION_ERROR,))
        self.summary.discards_by_reason = {
            reason.value: count for reason, count in self.discards.counts.items()
        }

    def _publish_progress(self) -> None:
        self._refresh_counters()
        self.ledger.update(self.import_id, **self.summary.counters)

    def _cancel_requested(self, cancel_event: threading.Event | None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return self.ledger.is_cancelled(self.import_id)

    def cleanup(self) -> None:
        """
        Remove downloaded archives and extracted files (disk mode only).

        run() skips this for cancelled runs so a later run can reuse the files.
        """
        if self.config.download_mode != "disk" or self.config.keep_downloads:
            return

        for archive in self._archives:
            if isinstance(archive, Path):
                archive.unlink(missing_ok=True)
        shutil.rmtree(self.extract_root, ignore_errors=True)
        logger.info(f"Cleaned up downloads in {self.config.download_dir}")
