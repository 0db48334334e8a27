"""
RequiredFieldValidator - ensures a source column is present and not blank.
"""

from typing import Any

from src.core.models import DiscardReason

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required column is present and non-empty after trimming.

    Fails if:
    - Column is missing from the record
    - Column value is None or whitespace only
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.message = self.parameters.get("message", f"Missing {field_name.lower().replace('_', ' ')}")

    def validate(self, record: dict[str, str]) -> None:
        value = record.get(self.field_name)
        if value is None or str(value).strip() == "":
            raise self.fail(self.message)

    @property
    def rule_type(self) -> str:
        return "required_field"

    @property
    def discard_reason(self) -> DiscardReason:
        return DiscardReason.MISSING_REQUIRED_FIELDS
