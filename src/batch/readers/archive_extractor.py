"""
ZIP archive extraction: locates the CSV members of a downloaded archive.
"""

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from src.core.errors import ArchiveError
from src.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CsvEntry:
    """
    A CSV member of an archive, held either in memory or on local disk.
    """

    name: str
    content: bytes | None = None
    path: Path | None = None

    def open(self) -> BinaryIO:
        """Open the entry as a binary stream."""
        if self.content is not None:
            return io.BytesIO(self.content)
        if self.path is not None:
            return open(self.path, "rb")
        raise ArchiveError(f"CSV entry {self.name} has neither content nor path")


def is_csv_name(name: str) -> bool:
    return name.lower().endswith(".csv")


class ArchiveExtractor:
    """
    Opens ZIP containers and lists their CSV members.

    Archives given as bytes are read in memory; archives given as a path are
    expanded under extract_dir and the resulting tree is searched recursively.
    """

    def __init__(self, extract_dir: str | Path | None = None):
        """
        Initialize archive extractor.

        Args:
            extract_dir: Root directory for on-disk extraction
        """
        self.extract_dir = Path(extract_dir) if extract_dir is not None else None

    def list_csv_entries(self, archive: bytes | str | Path) -> list[CsvEntry]:
        """
        List every CSV member of an archive.

        Args:
            archive: ZIP bytes, or the path of a ZIP file on disk

        Returns:
            CSV entries in archive order (memory) or sorted path order (disk);
            empty if the archive is valid but holds no CSV members

        Raises:
            ArchiveError: If the container cannot be opened
        """
        if isinstance(archive, (bytes, bytearray)):
            return self._list_in_memory(bytes(archive))
        return self._extract_to_disk(Path(archive))

    def _list_in_memory(self, archive: bytes) -> list[CsvEntry]:
        logger.info("Extracting ZIP file in memory")
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                entries = [
                    CsvEntry(name=info.filename, content=zf.read(info))
                    for info in zf.infolist()
                    if not info.is_dir() and is_csv_name(info.filename)
                ]
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise ArchiveError(f"Cannot open ZIP archive: {e}") from e

        self._log_entries(entries)
        return entries

    def _extract_to_disk(self, archive_path: Path) -> list[CsvEntry]:
        root = self.extract_dir or archive_path.parent / "extracted"
        target = root / archive_path.stem

        existing = find_csv_files(target) if target.exists() else []
        if existing:
            logger.info(f"Found {len(existing)} extracted CSV files in {target}, skipping extraction")
            return [CsvEntry(name=str(p.relative_to(root)), path=p) for p in existing]

        logger.info(f"Extracting {archive_path} to {target}")
        try:
            with zipfile.ZipFile(archive_path) as zf:
                zf.extractall(target)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise ArchiveError(f"Cannot open ZIP archive {archive_path}: {e}") from e

        entries = [
            CsvEntry(name=str(p.relative_to(root)), path=p) for p in find_csv_files(target)
        ]
        self._log_entries(entries)
        return entries

    @staticmethod
    def _log_entries(entries: list[CsvEntry]) -> None:
        logger.info(f"Found {len(entries)} CSV files")
        for entry in entries:
            logger.debug(f"Found CSV member: {entry.name}")


def find_csv_files(directory: Path) -> list[Path]:
    """Recursively find CSV files under directory, sorted by path."""
    return sorted(p for p in directory.rglob("*") if p.is_file() and is_csv_name(p.name))
