"""
Rule configuration management.

Loads per-column validation rules from YAML files and provides a builder
for defining them in code.
"""

from pathlib import Path
from typing import Any

import yaml


class RuleConfigLoader:
    """
    Loads validation rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      station_id:
        - type: required_field
        - type: numeric
          params:
            expected_type: int

      latitude:
        - type: required_field
        - type: numeric
        - type: range
          severity: warning
          params:
            min: 22.0
            max: 23.0
    ```

    The ``rules`` mapping may also sit under a top-level section (for
    example ``station_information.rules`` in the pipeline config).
    """

    def __init__(self, config_path: str | Path, section: str | None = None):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
            section: Optional top-level key holding the ``rules`` mapping
        """
        self.config_path = Path(config_path)
        self.section = section
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self) -> list[dict[str, Any]]:
        """
        Load and parse validation rules from YAML file.

        Returns:
            List of rule dictionaries suitable for RuleEngine

        Raises:
            ValueError: If YAML is invalid or missing required fields
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if self.section:
            config = (config or {}).get(self.section)

        if not config or "rules" not in config:
            raise ValueError("Configuration must contain a 'rules' section")

        return parse_rules(config["rules"])


def parse_rules(field_rules: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Turn a ``{field: [rule, ...]}`` mapping into a flat rule list.

    Raises:
        ValueError: If a rule definition is invalid
    """
    rules = []
    for field_name, field_rule_list in field_rules.items():
        if not isinstance(field_rule_list, list):
            raise ValueError(f"Rules for field '{field_name}' must be a list")

        for idx, rule_def in enumerate(field_rule_list):
            rules.append(_parse_rule(field_name, rule_def, idx))
    return rules


def _parse_rule(field_name: str, rule_def: dict[str, Any] | str, idx: int) -> dict[str, Any]:
    # A bare string is shorthand for a rule type without parameters
    if isinstance(rule_def, str):
        rule_def = {"type": rule_def}

    if "type" not in rule_def:
        raise ValueError(f"Rule for field '{field_name}' is missing 'type'")

    rule_type = rule_def["type"]
    rule_name = rule_def.get("name", f"{field_name}_{rule_type}_{idx}")
    parameters = rule_def.get("params", rule_def.get("parameters", {}))

    severity = rule_def.get("severity", "error")
    if severity not in ("error", "warning"):
        raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

    return {
        "rule_name": rule_name,
        "rule_type": rule_type,
        "field_name": field_name,
        "parameters": parameters,
        "severity": severity,
        "enabled": rule_def.get("enabled", True),
    }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (defaults and tests).
    """

    def __init__(self):
        self.rules: list[dict[str, Any]] = []

    def _add(self, field_name: str, rule_type: str, parameters: dict[str, Any], severity: str = "error") -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": f"{field_name}_{rule_type}",
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": True,
        })
        return self

    def add_required_field(self, field_name: str) -> "RuleConfigBuilder":
        return self._add(field_name, "required_field", {})

    def add_numeric(self, field_name: str, expected_type: str = "float") -> "RuleConfigBuilder":
        return self._add(field_name, "numeric", {"expected_type": expected_type})

    def add_range(
        self,
        field_name: str,
        min_value: float | None = None,
        max_value: float | None = None,
        severity: str = "error",
        code: str | None = None,
    ) -> "RuleConfigBuilder":
        """Add a range rule; out-of-range values are reported with ``code``."""
        params: dict[str, Any] = {}
        if min_value is not None:
            params["min"] = min_value
        if max_value is not None:
            params["max"] = max_value
        if code:
            params["code"] = code
        return self._add(field_name, "range", params, severity)

    def add_timestamp(self, field_name: str) -> "RuleConfigBuilder":
        return self._add(field_name, "timestamp", {})

    def build(self) -> list[dict[str, Any]]:
        return self.rules
