"""
Field-level validation rules.

Provides validators for required fields, numeric parsing, ranges and
timestamps.
"""

from .base_validator import BaseValidator, ValidationError
from .numeric_validator import NumericValidator, parse_float, parse_int
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator
from .timestamp_validator import TimestampValidator, parse_timestamp

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "NumericValidator",
    "RangeValidator",
    "TimestampValidator",
    "parse_float",
    "parse_int",
    "parse_timestamp",
]
