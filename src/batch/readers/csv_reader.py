"""
Streaming CSV reader for the State Controller's property files.

Rows are pulled one at a time from the underlying byte stream, so files of
several gigabytes can be processed without holding their rows in memory.
"""

import csv
import io
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Union

from src.core.errors import ParseError

CsvSource = Union[bytes, bytearray, str, Path, BinaryIO]


@dataclass
class CsvRow:
    """
    One data row pulled from a CSV stream.

    Attributes:
        row_number: Physical line number where the row ended (header is line 1)
        values: Header-keyed cells, or None when the row could not be parsed
        raw: Cells as read, before keying by header
        error: Parse failure for this row, if any
    """

    row_number: int
    values: dict[str, str] | None = None
    raw: list[str] | None = field(default=None, repr=False)
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CSVStreamReader:
    """
    Reads header-keyed records from comma-separated data.

    Delimiter ",", quote '"', doubled-quote escaping, empty lines skipped.
    The first non-empty row is the header and is never yielded.
    """

    def __init__(
        self,
        delimiter: str = ",",
        quotechar: str = '"',
        encoding: str = "utf-8",
        encoding_errors: str = "replace",
    ):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
            quotechar: Quote character (escaped by doubling)
            encoding: Text encoding of the input bytes
            encoding_errors: Codec error handler for undecodable bytes
        """
        self.delimiter = delimiter
        self.quotechar = quotechar
        self.encoding = encoding
        self.encoding_errors = encoding_errors
        self.headers: list[str] | None = None

    @contextmanager
    def _open_text(self, source: CsvSource):
        if isinstance(source, (bytes, bytearray)):
            binary: BinaryIO = io.BytesIO(source)
        elif isinstance(source, (str, Path)):
            try:
                binary = open(source, "rb")
            except OSError as e:
                raise ParseError(f"Cannot open CSV file {source}: {e}") from e
        else:
            binary = source

        text = io.TextIOWrapper(
            binary, encoding=self.encoding, errors=self.encoding_errors, newline=""
        )
        try:
            yield text
        finally:
            text.close()

    def read(self, source: CsvSource) -> Iterator[CsvRow]:
        """
        Lazily yield data rows from a CSV source.

        Rows shorter than the header are padded with empty strings; cells beyond
        the header are dropped. A structurally malformed row is yielded with its
        error set so the consumer can discard it and keep reading.

        Args:
            source: Raw bytes, a file path, or a binary stream

        Yields:
            CsvRow for every data row

        Raises:
            ParseError: If the stream cannot be read or the header row is malformed
        """
        self.headers = None

        with self._open_text(source) as text:
            reader = csv.reader(
                text,
                delimiter=self.delimiter,
                quotechar=self.quotechar,
                doublequote=True,
                strict=True,
            )
            headers: list[str] | None = None

            while True:
                try:
                    cells = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    if headers is None:
                        raise ParseError(f"Malformed header row: {e}", reader.line_num) from e
                    yield CsvRow(
                        row_number=reader.line_num,
                        error=ParseError(str(e), reader.line_num),
                    )
                    continue
                except (OSError, UnicodeDecodeError) as e:
                    raise ParseError(f"Unreadable CSV stream: {e}", reader.line_num) from e

                if not cells:
                    continue

                if headers is None:
                    headers = [cell.strip() for cell in cells]
                    headers[0] = headers[0].lstrip("\ufeff")
                    self.headers = headers
                    continue

                yield CsvRow(
                    row_number=reader.line_num,
                    values=self.key_row(headers, cells),
                    raw=cells,
                )

    @staticmethod
    def key_row(headers: list[str], cells: list[str]) -> dict[str, str]:
        """Zip headers with cells, padding missing trailing cells with ""."""
        return {
            header: cells[index] if index < len(cells) else ""
            for index, header in enumerate(headers)
        }
