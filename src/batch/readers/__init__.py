"""
Archive and CSV readers.
"""

from .archive_extractor import ArchiveExtractor, CsvEntry
from .archive_fetcher import ArchiveFetcher
from .csv_reader import CSVStreamReader, CsvRow

__all__ = [
    "ArchiveFetcher",
    "ArchiveExtractor",
    "CsvEntry",
    "CSVStreamReader",
    "CsvRow",
]
