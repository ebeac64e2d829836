"""
RangeValidator - bounds check on an already parsed number.
"""

from typing import Any

from .base_validator import BaseValidator


class RangeValidator(BaseValidator):
    """
    Checks min <= value <= max, either bound optional.

    Parameters:
    - min, max: inclusive bounds
    - code: issue code to report, "OutOfBounds" unless overridden
      (station counts use "NegativeValue")
    """

    rule_type = "range"

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.lower = self.parameters.get("min")
        self.upper = self.parameters.get("max")
        self.code = self.parameters.get("code", "OutOfBounds")
        if self.lower is None and self.upper is None:
            raise ValueError(f"Range rule for {field_name} needs min or max")

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int | float):
            self.fail("InvalidNumericValue", f"Value must be numeric, got {type(value).__name__}")

        below = self.lower is not None and value < self.lower
        above = self.upper is not None and value > self.upper
        if below or above:
            self.fail(self.code, self._describe(value))
        return value

    def _describe(self, value: Any) -> str:
        if self.upper is None:
            return f"Value {value} is less than minimum {self.lower}"
        if self.lower is None:
            return f"Value {value} exceeds maximum {self.upper}"
        return f"Value {value} outside expected range [{self.lower}, {self.upper}]"
