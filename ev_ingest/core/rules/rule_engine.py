"""
Rule engine for applying column rules to CSV rows.

Rules for the same column form a chain: each validator receives the value
returned by the previous one, and the first error stops the chain for
that column. Warnings are collected without stopping it.
"""

from dataclasses import dataclass, field
from typing import Any

from ev_ingest.core.validators import (
    BaseValidator,
    NumericValidator,
    RangeValidator,
    RequiredFieldValidator,
    TimestampValidator,
    ValidationError,
)


@dataclass
class RowCheck:
    """Outcome of checking one row: parsed values plus failures by severity."""

    values: dict[str, Any] = field(default_factory=dict)
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors

    def value(self, field_name: str) -> Any:
        """Parsed value of a column, or None if any error hit that column."""
        return self.values.get(field_name)


class RuleEngine:
    """
    Orchestrates validation rules on CSV rows.

    Loads rules from configuration and applies them per column in order.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "numeric": NumericValidator,
        "range": RangeValidator,
        "timestamp": TimestampValidator,
    }

    def __init__(self, rules: list[dict[str, Any]]):
        """
        Initialize the rule engine with validation rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (required_field, numeric, range, timestamp)
                   - field_name: str
                   - parameters: Dict[str, Any] (optional)
                   - severity: str (error or warning)
                   - enabled: bool (default True)
        """
        self.rules = rules
        self.chains: dict[str, list[tuple[str, str, BaseValidator]]] = {}
        self._build_validators()

    def _build_validators(self) -> None:
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]
            field_name = rule["field_name"]
            parameters = rule.get("parameters", {})
            severity = rule.get("severity", "error")

            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(field_name, parameters)
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e

            self.chains.setdefault(field_name, []).append((rule_name, severity, validator))

    @property
    def fields(self) -> list[str]:
        """Columns with at least one enabled rule, in configuration order."""
        return list(self.chains)

    def validate_row(self, row: dict[str, str]) -> RowCheck:
        """
        Validate a row against all rules.

        Args:
            row: Header -> raw string value

        Returns:
            RowCheck with parsed values and collected failures
        """
        check = RowCheck()

        for field_name, chain in self.chains.items():
            value: Any = row.get(field_name)
            failed = False

            for _rule_name, severity, validator in chain:
                try:
                    value = validator.validate(value, row)
                except ValidationError as e:
                    if severity == "error":
                        check.errors.append(e)
                        failed = True
                        break
                    check.warnings.append(e)

            if not failed:
                check.values[field_name] = value

        return check

    def get_rule_summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for chain in self.chains.values():
            for _, _, validator in chain:
                counts[validator.rule_type] = counts.get(validator.rule_type, 0) + 1
        return {"total_rules": sum(counts.values()), "rules_by_type": counts}
