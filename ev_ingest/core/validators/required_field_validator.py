"""
RequiredFieldValidator - the column must hold a non-blank value.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Rejects cells that are absent (short row), None or whitespace only.

    Returns the stripped text so later checks see a clean value.
    """

    rule_type = "required_field"

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        text = value.strip() if isinstance(value, str) else value
        if text is None or text == "":
            self.fail("MissingRequiredField", f"Missing {self.field_name}")
        return text
