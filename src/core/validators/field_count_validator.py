"""
FieldCountValidator - rejects truncated or garbled rows.
"""

from typing import Any

from src.core.models import DiscardReason

from .base_validator import BaseValidator


class FieldCountValidator(BaseValidator):
    """
    Validates that a record carries a minimum number of distinct fields.

    The record passed in must hold only the cells the row actually carried
    (not padded to the header width). The threshold is capped at the header
    width, so narrow files whose header has fewer columns than min_fields are
    still loadable while truncated rows of wide files are rejected.

    Parameters:
        min_fields: Minimum number of distinct keys (default: 5)
    """

    def __init__(self, field_name: str = "*", parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.min_fields = int(self.parameters.get("min_fields", 5))

    def validate(self, record: dict[str, str], expected_fields: int | None = None) -> None:
        threshold = self.min_fields
        if expected_fields is not None:
            threshold = min(threshold, expected_fields)

        if len(record) < threshold:
            raise self.fail("Record has too few fields")

    @property
    def rule_type(self) -> str:
        return "field_count"

    @property
    def discard_reason(self) -> DiscardReason:
        return DiscardReason.MALFORMED_DATA
