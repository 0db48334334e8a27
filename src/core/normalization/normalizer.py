"""
Record normalization: raw CSV rows to canonical property records.

Rows are validated (owner name present, enough fields), their uppercase
source columns mapped onto UnclaimedPropertyRecord, and an identifier
assigned. Nothing raised while handling one row escapes normalize(); every
failure becomes a Discard so the stream keeps flowing.
"""

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from src.core.models import DiscardReason, UnclaimedPropertyRecord
from src.core.validators import FieldCountValidator, RequiredFieldValidator, ValidationError
from src.observability.logger import get_logger

from .identifiers import SyntheticIdGenerator

if TYPE_CHECKING:
    from src.batch.readers.csv_reader import CsvRow

logger = get_logger(__name__)

ID_FIELDS = ("PROPERTY_ID", "id")

# Source column -> canonical attribute, for plain optional text columns
OPTIONAL_TEXT_FIELDS: dict[str, str] = {
    "NAME_OF_SECURITIES_REPORTED": "name_of_securities_reported",
    "OWNER_STREET_1": "owner_street_1",
    "OWNER_STREET_2": "owner_street_2",
    "OWNER_STREET_3": "owner_street_3",
    "OWNER_CITY": "owner_city",
    "OWNER_STATE": "owner_state",
    "OWNER_ZIP": "owner_zip",
    "OWNER_COUNTRY_CODE": "owner_country_code",
    "HOLDER_STREET_1": "holder_street_1",
    "HOLDER_STREET_2": "holder_street_2",
    "HOLDER_STREET_3": "holder_street_3",
    "HOLDER_CITY": "holder_city",
    "HOLDER_STATE": "holder_state",
    "HOLDER_ZIP": "holder_zip",
    "CUSIP": "cusip",
}

DECIMAL_FIELDS: dict[str, str] = {
    "CASH_REPORTED": "cash_reported",
    "SHARES_REPORTED": "shares_reported",
    "CURRENT_CASH_BALANCE": "current_cash_balance",
}

INTEGER_FIELDS: dict[str, str] = {
    "NUMBER_OF_PENDING_CLAIMS": "number_of_pending_claims",
    "NUMBER_OF_PAID_CLAIMS": "number_of_paid_claims",
}

_DECIMAL_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_INTEGER_PREFIX = re.compile(r"^\s*[+-]?\d+")


def parse_decimal(value: str | None) -> float:
    """
    Parse the leading decimal number of value.

    Empty, unparsable, negative and non-finite input all yield 0.0.
    """
    if not value:
        return 0.0
    match = _DECIMAL_PREFIX.match(value)
    if not match:
        return 0.0
    number = float(match.group(0))
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def parse_integer(value: str | None) -> int:
    """Parse the leading integer of value ("3.0" -> 3); 0 when absent or negative."""
    if not value:
        return 0
    match = _INTEGER_PREFIX.match(value)
    if not match:
        return 0
    return max(int(match.group(0)), 0)


def source_id(values: dict[str, str]) -> str | None:
    """Return the trimmed source identifier of a row, if it has one."""
    for name in ID_FIELDS:
        candidate = (values.get(name) or "").strip()
        if candidate:
            return candidate
    return None


def has_source_id(values: dict[str, str]) -> bool:
    return source_id(values) is not None


@dataclass
class NormalizedRecord:
    """A row that passed validation, with the location it came from."""

    record: UnclaimedPropertyRecord
    file_name: str | None = None
    row_number: int | None = None
    synthetic_id: bool = False


@dataclass
class Discard:
    """A row rejected before persistence."""

    reason: DiscardReason
    message: str
    original_data: dict[str, Any] = field(default_factory=dict)
    file_name: str | None = None
    row_number: int | None = None


class RecordNormalizer:
    """
    Validates and maps raw rows for one import run.

    Holds the run's SyntheticIdGenerator, so a fresh normalizer must be used
    per run to keep generated ids reproducible.
    """

    def __init__(self, id_generator: SyntheticIdGenerator | None = None, min_fields: int = 5):
        self.id_generator = id_generator or SyntheticIdGenerator()
        self.validators = [
            RequiredFieldValidator("OWNER_NAME"),
            FieldCountValidator(parameters={"min_fields": min_fields}),
        ]

    def normalize(self, row: "CsvRow", file_name: str | None = None) -> NormalizedRecord | Discard:
        """
        Normalize one parsed row.

        Args:
            row: Row pulled from CSVStreamReader
            file_name: CSV member the row came from

        Returns:
            NormalizedRecord on success, Discard otherwise
        """
        if row.error is not None:
            return Discard(
                reason=DiscardReason.PARSE_ERROR,
                message=str(row.error),
                original_data={"raw_row": row.raw or []},
                file_name=file_name,
                row_number=row.row_number,
            )

        values = row.values or {}
        try:
            present = self._present_fields(row)
            for validator in self.validators:
                if isinstance(validator, FieldCountValidator):
                    validator.validate(present, expected_fields=len(values))
                else:
                    validator.validate(present)

            record, synthetic = self._map(values)
        except ValidationError as e:
            logger.debug(f"Discarding row {row.row_number} of {file_name}: {e.message}")
            return Discard(
                reason=e.reason,
                message=e.message,
                original_data=dict(values),
                file_name=file_name,
                row_number=row.row_number,
            )
        except (PydanticValidationError, ValueError, TypeError, KeyError) as e:
            logger.debug(f"Failed to map row {row.row_number} of {file_name}: {e}")
            return Discard(
                reason=DiscardReason.PARSE_ERROR,
                message=str(e),
                original_data={"raw_row": row.raw or list(values.values())},
                file_name=file_name,
                row_number=row.row_number,
            )

        return NormalizedRecord(
            record=record,
            file_name=file_name,
            row_number=row.row_number,
            synthetic_id=synthetic,
        )

    @staticmethod
    def _present_fields(row: "CsvRow") -> dict[str, str]:
        """Keep only the cells the row actually carried."""
        values = row.values or {}
        if row.raw is None:
            return dict(values)
        return {header: values[header] for header in list(values)[: len(row.raw)]}

    def _map(self, values: dict[str, str]) -> tuple[UnclaimedPropertyRecord, bool]:
        identifier = source_id(values)
        synthetic = identifier is None
        if synthetic:
            identifier = self.id_generator.next_id(values)

        attributes: dict[str, Any] = {
            "id": identifier,
            "property_type": values.get("PROPERTY_TYPE") or "",
            "number_of_owners": values.get("NO_OF_OWNERS") or "1",
            "owner_name": values.get("OWNER_NAME") or "",
            "holder_name": values.get("HOLDER_NAME") or "",
        }
        for column, attribute in OPTIONAL_TEXT_FIELDS.items():
            attributes[attribute] = values.get(column) or None
        for column, attribute in DECIMAL_FIELDS.items():
            attributes[attribute] = parse_decimal(values.get(column))
        for column, attribute in INTEGER_FIELDS.items():
            attributes[attribute] = parse_integer(values.get(column))

        return UnclaimedPropertyRecord(**attributes), synthetic
