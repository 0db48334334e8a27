"""
Exception taxonomy for the unclaimed-property import pipeline.

Archive acquisition errors abort a run. Row-level errors are absorbed by the
normalizer and recorded as discards; batch-level errors by the writer.
"""


class ImportPipelineError(Exception):
    """Base class for all import pipeline errors."""


class TransportError(ImportPipelineError):
    """Raised when the archive cannot be reached (DNS, TLS, connection reset, timeout)."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Transport error fetching {url}: {message}")


class DownloadError(ImportPipelineError):
    """Raised when the archive server answers with a status other than 200."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ArchiveError(ImportPipelineError):
    """Raised when the ZIP container cannot be opened or holds no CSV data."""


class ParseError(ImportPipelineError):
    """Raised (or carried on a row) when CSV structure is malformed."""

    def __init__(self, message: str, row_number: int | None = None):
        self.row_number = row_number
        self.message = message
        location = f" at row {row_number}" if row_number is not None else ""
        super().__init__(f"CSV parse error{location}: {message}")


class LedgerError(ImportPipelineError):
    """Raised when an import run cannot be registered in the ledger."""


class BatchInsertError(ImportPipelineError):
    """Raised when a batch could not be persisted to the property store."""

    def __init__(self, record_count: int, cause: Exception):
        self.record_count = record_count
        self.cause = cause
        super().__init__(f"Failed to persist batch of {record_count} records: {cause}")


class ImportCancelled(ImportPipelineError):
    """Raised inside the load loop when a cancellation request is observed."""
