"""Declarative tag rules and the generic evaluator."""

from .evaluator import EvaluationResult, RuleEvaluator, build_suggestion
from .library import (
    RULES_BY_ID,
    TAG_RULES,
    get_rule,
    get_rules_by_category,
    get_rules_by_severity,
    is_indexed,
    validate_rule_table,
)

__all__ = [
    "TAG_RULES",
    "RULES_BY_ID",
    "get_rule",
    "get_rules_by_category",
    "get_rules_by_severity",
    "validate_rule_table",
    "is_indexed",
    "RuleEvaluator",
    "EvaluationResult",
    "build_suggestion",
]
