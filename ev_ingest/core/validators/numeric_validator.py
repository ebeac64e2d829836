"""
NumericValidator - parses CSV strings into int or float.

Also exposes the parse helpers used by the transforms, so validation and
transformation agree on what counts as a number.
"""

import math
from typing import Any

from .base_validator import BaseValidator


def parse_float(value: Any) -> float:
    """
    Parse a CSV cell as a finite float.

    Raises:
        ValueError: If the value is empty, non-numeric, NaN or infinite
    """
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, int | float):
        number = float(value)
    else:
        text = (value or "").strip()
        if not text:
            raise ValueError("empty value")
        number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def parse_int(value: Any) -> int:
    """
    Parse a CSV cell as an int.

    Integral floats such as ``"12.0"`` are accepted; ``"12.5"`` is not.

    Raises:
        ValueError: If the value is not an integer
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = value.strip() if isinstance(value, str) else value
    try:
        return int(text)
    except (TypeError, ValueError):
        number = parse_float(value)
        if not number.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(number)


class NumericValidator(BaseValidator):
    """
    Validates that a field parses as a number and returns the parsed value.

    Parameters:
    - expected_type: "int" or "float" (default "float")
    """

    rule_type = "numeric"

    PARSERS = {
        "int": parse_int,
        "integer": parse_int,
        "float": parse_float,
        "decimal": parse_float,
    }

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = str(self.parameters.get("expected_type", "float")).lower()
        parser = self.PARSERS.get(expected_type)
        if parser is None:
            raise ValueError(f"Unsupported numeric type: {expected_type}")
        self.expected_type = expected_type
        self._parse = parser

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        # Skip None (handled by required_field validator)
        if value is None:
            return None

        try:
            return self._parse(value)
        except (TypeError, ValueError):
            self.fail("InvalidNumericValue", f"Invalid numeric value: {value}")

