"""
Base validator interface for row-level rules.

Each validator checks a raw header-keyed CSV record before it is mapped onto
the property schema, and names the discard reason used when it fails.
"""

from abc import ABC, abstractmethod
from typing import Any

from src.core.models import DiscardReason


class ValidationError(Exception):
    """Raised when a validation rule fails."""

    def __init__(self, rule_name: str, field_name: str, message: str, reason: DiscardReason):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        self.reason = reason
        super().__init__(f"[{rule_name}] {field_name}: {message}")


class BaseValidator(ABC):
    """
    Abstract base class for all row validators.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Name of the source column the rule inspects
            parameters: Rule-specific parameters
        """
        self.field_name = field_name
        self.parameters = parameters or {}

    @abstractmethod
    def validate(self, record: dict[str, str]) -> None:
        """
        Validate a raw record.

        Args:
            record: Header-keyed CSV record

        Raises:
            ValidationError: If validation fails
        """

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""

    @property
    @abstractmethod
    def discard_reason(self) -> DiscardReason:
        """Reason recorded on the discard when this rule fails."""

    def fail(self, message: str) -> ValidationError:
        return ValidationError(
            rule_name=self.rule_type,
            field_name=self.field_name,
            message=message,
            reason=self.discard_reason,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
