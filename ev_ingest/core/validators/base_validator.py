"""
Base class for cell checks on CSV rows.

A validator is bound to one column. validate() either returns the (possibly
parsed) cell value for the next check in the chain or raises ValidationError
carrying the issue code the report will show.
"""

from abc import ABC, abstractmethod
from typing import Any, NoReturn

from ev_ingest.core.errors import ValidationViolation


class ValidationError(ValidationViolation):
    """A single cell failed a check."""

    def __init__(self, rule_name: str, field_name: str, message: str, code: str = "ValidationViolation"):
        self.rule_name = rule_name
        self.field_name = field_name
        super().__init__(code, f"{field_name}: {message}")
        self.message = message


class BaseValidator(ABC):
    """Column-bound check; subclasses set ``rule_type`` and implement validate()."""

    rule_type: str = ""

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Args:
            field_name: CSV column the check applies to
            parameters: Options for the check, as given in the rule config
        """
        self.field_name = field_name
        self.parameters = parameters or {}

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        """
        Check one cell.

        Args:
            value: Raw cell text, or whatever the previous check returned
            record: The whole row, keyed by header

        Returns:
            Value passed on to the next check

        Raises:
            ValidationError: If the cell fails the check
        """

    def fail(self, code: str, message: str) -> NoReturn:
        raise ValidationError(self.rule_type, self.field_name, message, code)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field_name!r}, {self.parameters!r})"
