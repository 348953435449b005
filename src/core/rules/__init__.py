"""
Business rule evaluation and configuration management.
"""

from .expressions import Comparison, ConditionSyntaxError, parse_condition
from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import BusinessRuleEvaluator, evaluate_rules

__all__ = [
    "BusinessRuleEvaluator",
    "evaluate_rules",
    "Comparison",
    "ConditionSyntaxError",
    "parse_condition",
    "RuleConfigLoader",
    "RuleConfigBuilder",
]
