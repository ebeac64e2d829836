"""
Unit tests for the rule engine and rule configuration.
"""

import tempfile
from pathlib import Path

import pytest

from ev_ingest.core.config import GeoBounds, default_station_rules
from ev_ingest.core.rules import RuleConfigBuilder, RuleConfigLoader, RuleEngine, parse_rules


@pytest.mark.unit
class TestRuleEngine:
    """Tests for RuleEngine"""

    def test_engine_initialization(self):
        rules = RuleConfigBuilder().add_required_field("station_id").add_numeric("station_id", "int").build()

        engine = RuleEngine(rules)

        assert engine.fields == ["station_id"]
        assert engine.get_rule_summary() == {
            "total_rules": 2,
            "rules_by_type": {"required_field": 1, "numeric": 1},
        }

    def test_valid_row_returns_parsed_values(self):
        engine = RuleEngine(default_station_rules(GeoBounds()))
        row = {
            "station_id": "1001",
            "TAZID": "102",
            "latitude": "22.5",
            "longitude": "114.0",
            "slow_count": "4",
            "fast_count": "2",
            "charge_count": "6",
        }

        check = engine.validate_row(row)

        assert check.passed
        assert check.warnings == []
        assert check.value("station_id") == 1001
        assert check.value("latitude") == 22.5
        assert check.value("slow_count") == 4

    def test_first_error_stops_field_chain(self):
        """Test a missing value reports one error and leaves the value unset"""
        rules = (
            RuleConfigBuilder()
            .add_required_field("station_id")
            .add_numeric("station_id", "int")
            .build()
        )
        engine = RuleEngine(rules)

        check = engine.validate_row({"station_id": ""})

        assert [e.code for e in check.errors] == ["MissingRequiredField"]
        assert check.value("station_id") is None

    def test_warning_does_not_stop_chain(self):
        """Test an out-of-bounds latitude is a warning and the value is kept"""
        rules = (
            RuleConfigBuilder()
            .add_numeric("latitude")
            .add_range("latitude", 22.0, 23.0, severity="warning", code="OutOfBounds")
            .build()
        )
        engine = RuleEngine(rules)

        check = engine.validate_row({"latitude": "40.7"})

        assert check.passed
        assert [w.code for w in check.warnings] == ["OutOfBounds"]
        assert check.value("latitude") == 40.7

    def test_errors_on_several_fields(self):
        engine = RuleEngine(default_station_rules(GeoBounds()))
        row = {
            "station_id": "x",
            "TAZID": "",
            "latitude": "22.5",
            "longitude": "114.0",
            "slow_count": "-1",
            "fast_count": "2",
            "charge_count": "1.5",
        }

        check = engine.validate_row(row)

        codes = {(e.field_name, e.code) for e in check.errors}
        assert codes == {
            ("station_id", "InvalidNumericValue"),
            ("TAZID", "MissingRequiredField"),
            ("slow_count", "NegativeValue"),
            ("charge_count", "InvalidNumericValue"),
        }

    def test_disabled_rule_is_skipped(self):
        rules = RuleConfigBuilder().add_required_field("TAZID").build()
        rules[0]["enabled"] = False

        check = RuleEngine(rules).validate_row({})

        assert check.passed

    def test_unknown_rule_type(self):
        rules = [{"rule_name": "x", "rule_type": "regex", "field_name": "a"}]

        with pytest.raises(ValueError, match="Unknown rule type"):
            RuleEngine(rules)

    def test_invalid_rule_parameters(self):
        rules = [{"rule_name": "lat_range", "rule_type": "range", "field_name": "latitude", "parameters": {}}]

        with pytest.raises(ValueError, match="lat_range"):
            RuleEngine(rules)


@pytest.mark.unit
class TestRuleConfigLoader:
    """Tests for RuleConfigLoader"""

    def test_load_rules_from_yaml(self):
        yaml_content = """
rules:
  station_id:
    - required_field
    - type: numeric
      params:
        expected_type: int
  latitude:
    - type: range
      severity: warning
      params:
        min: 22.0
        max: 23.0
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(yaml_content)
            path = f.name

        try:
            rules = RuleConfigLoader(path).load_rules()
        finally:
            Path(path).unlink()

        assert [(r["field_name"], r["rule_type"]) for r in rules] == [
            ("station_id", "required_field"),
            ("station_id", "numeric"),
            ("latitude", "range"),
        ]
        assert rules[2]["severity"] == "warning"
        assert rules[1]["parameters"] == {"expected_type": "int"}

    def test_load_rules_from_section(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("station_information:\n  rules:\n    TAZID:\n      - required_field\n")

        rules = RuleConfigLoader(path, section="station_information").load_rules()

        assert rules[0]["field_name"] == "TAZID"

    def test_missing_rules_section(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("other: 1\n")

        with pytest.raises(ValueError, match="rules"):
            RuleConfigLoader(path).load_rules()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            RuleConfigLoader("/nonexistent/rules.yaml")

    def test_invalid_severity(self):
        with pytest.raises(ValueError, match="severity"):
            parse_rules({"latitude": [{"type": "numeric", "severity": "fatal"}]})

    def test_field_rules_must_be_list(self):
        with pytest.raises(ValueError, match="must be a list"):
            parse_rules({"latitude": "numeric"})
