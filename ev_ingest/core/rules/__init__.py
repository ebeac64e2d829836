"""
Column rule engine and configuration management.
"""

from .rule_config import RuleConfigBuilder, RuleConfigLoader, parse_rules
from .rule_engine import RowCheck, RuleEngine

__all__ = ["RuleEngine", "RowCheck", "RuleConfigLoader", "RuleConfigBuilder", "parse_rules"]
