"""
Row validation rules applied before records are normalized.
"""

from .base_validator import BaseValidator, ValidationError
from .field_count_validator import FieldCountValidator
from .required_field_validator import RequiredFieldValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "FieldCountValidator",
]
