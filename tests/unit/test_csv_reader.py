"""
Unit tests for the streaming CSV reader.

Includes property-based testing with hypothesis for short-row padding.
"""

import io

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.batch.readers import CSVStreamReader
from src.core.errors import ParseError


class _IterStream(io.RawIOBase):
    """Raw stream fed from a generator of byte chunks."""

    def __init__(self, chunks):
        self._chunks = chunks
        self._pending = b""

    def readable(self):
        return True

    def readinto(self, buffer):
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


@pytest.mark.unit
class TestCSVStreamReader:
    """Tests for CSVStreamReader"""

    def test_header_is_not_yielded(self):
        """Test the first non-empty row becomes the header"""
        reader = CSVStreamReader()
        rows = list(reader.read(b"PROPERTY_ID,OWNER_NAME\nP1,Jane Doe\n"))

        assert len(rows) == 1
        assert rows[0].values == {"PROPERTY_ID": "P1", "OWNER_NAME": "Jane Doe"}
        assert reader.headers == ["PROPERTY_ID", "OWNER_NAME"]

    def test_quoted_fields_with_commas_and_doubled_quotes(self):
        """Test quoted cells keep embedded delimiters and escaped quotes"""
        data = b'ID,NAME\n1,"Smith, John ""Jack"""\n'
        rows = list(CSVStreamReader().read(data))

        assert rows[0].values["NAME"] == 'Smith, John "Jack"'

    def test_empty_lines_are_skipped(self):
        """Test blank lines before and between rows are ignored"""
        data = b"\n\nID,NAME\n\n1,A\n\n2,B\n"
        rows = list(CSVStreamReader().read(data))

        assert [row.values["ID"] for row in rows] == ["1", "2"]

    def test_short_rows_are_padded_and_long_rows_truncated(self):
        """Test missing trailing cells become empty strings, extra cells are dropped"""
        data = b"A,B,C\n1\n1,2,3,4\n"
        rows = list(CSVStreamReader().read(data))

        assert rows[0].values == {"A": "1", "B": "", "C": ""}
        assert rows[1].values == {"A": "1", "B": "2", "C": "3"}
        assert rows[0].raw == ["1"]

    def test_byte_order_mark_is_stripped_from_header(self):
        """Test a UTF-8 BOM does not leak into the first column name"""
        data = "\ufeffPROPERTY_ID,OWNER_NAME\nP1,Jane\n".encode("utf-8")
        rows = list(CSVStreamReader().read(data))

        assert "PROPERTY_ID" in rows[0].values

    def test_row_numbers_follow_physical_lines(self):
        """Test row_number reports the line where the row ended"""
        data = b"ID,NOTE\n1,a\n2,\"multi\nline\"\n3,c\n"
        rows = list(CSVStreamReader().read(data))

        assert [row.row_number for row in rows] == [2, 4, 5]

    def test_reads_from_binary_stream_and_path(self, tmp_path):
        """Test sources other than bytes are accepted"""
        path = tmp_path / "data.csv"
        path.write_bytes(b"ID\n1\n2\n")

        assert len(list(CSVStreamReader().read(path))) == 2
        assert len(list(CSVStreamReader().read(io.BytesIO(b"ID\n1\n")))) == 1

    def test_read_is_lazy(self):
        """Test rows are produced on demand rather than all at once"""
        consumed = []

        def lines():
            yield b"ID\n"
            for i in range(1000):
                consumed.append(i)
                yield f"{i}\n".encode()

        stream = io.BufferedReader(_IterStream(lines()), buffer_size=8)
        iterator = CSVStreamReader().read(stream)

        first = next(iterator)

        assert first.values == {"ID": "0"}
        assert len(consumed) < 1000

    def test_malformed_row_is_yielded_as_error(self):
        """Test an unbalanced quote yields an error row instead of ending the stream"""
        data = b'ID,NAME\n1,"bad"x\n2,good\n'
        rows = list(CSVStreamReader().read(data))

        assert not rows[0].ok
        assert isinstance(rows[0].error, ParseError)
        assert rows[-1].ok
        assert rows[-1].values == {"ID": "2", "NAME": "good"}

    def test_malformed_header_raises(self):
        """Test a broken header is fatal for the file"""
        with pytest.raises(ParseError):
            list(CSVStreamReader().read(b'"ID,NAME\n'))

    def test_missing_file_raises_parse_error(self, tmp_path):
        """Test an unreadable path raises ParseError"""
        with pytest.raises(ParseError):
            list(CSVStreamReader().read(tmp_path / "missing.csv"))

    def test_header_only_file_has_no_rows(self):
        assert list(CSVStreamReader().read(b"ID,NAME\n")) == []

    def test_invalid_bytes_are_replaced(self):
        """Test undecodable bytes do not abort the stream"""
        rows = list(CSVStreamReader().read(b"ID,NAME\n1,caf\xe9\n"))

        assert rows[0].values["NAME"].startswith("caf")

    @given(
        st.integers(min_value=2, max_value=8),
        st.integers(min_value=1, max_value=8),
    )
    def test_property_short_rows_always_fill_every_header(self, header_width, cell_count):
        """Property test: every yielded row is keyed by every header"""
        cell_count = min(cell_count, header_width)
        header = ",".join(f"C{i}" for i in range(header_width))
        row = ",".join("x" for _ in range(cell_count))
        rows = list(CSVStreamReader().read(f"{header}\n{row}\n".encode()))

        values = rows[0].values
        assert list(values) == [f"C{i}" for i in range(header_width)]
        assert sum(1 for v in values.values() if v == "x") == cell_count
        assert sum(1 for v in values.values() if v == "") == header_width - cell_count
