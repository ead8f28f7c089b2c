"""
Clinic Signal Engine — Rule Evaluator

One generic loop over the rule table. A predicate that raises is logged and
skipped; evaluation of the remaining rules continues.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from clinicops.errors import RuleEvaluationError
from clinicops.models import (
    Clinic,
    MetricsSnapshot,
    Suggestion,
    TagRule,
    epoch_ms,
    to_iso,
)

from .library import TAG_RULES

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Matched rules for one clinic, in table order."""

    matched: list[str] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    rule_errors: list[RuleEvaluationError] = field(default_factory=list)


def build_suggestion(rule: TagRule, now: datetime) -> Suggestion:
    """Suggestion for a matched rule, stamped with the pass clock."""
    return Suggestion(
        id=f"{rule.id}-{epoch_ms(now)}",
        type=rule.suggestion_type,
        message=rule.suggestion.message,
        action=rule.suggestion.action,
        related_field=rule.suggestion.related_field,
        created_at=to_iso(now),
        tag_id=rule.id,
    )


class RuleEvaluator:
    """Evaluates an ordered rule table against clinics."""

    def __init__(self, rules: tuple[TagRule, ...] | list[TagRule] = TAG_RULES):
        self.rules = tuple(rules)

    def evaluate(self, clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> EvaluationResult:
        """
        Evaluate every rule against one clinic.

        Args:
            clinic: Clinic record
            metrics: Metrics snapshot for this pass
            now: Pass clock; time-based rules never read the wall clock

        Returns:
            EvaluationResult with matched rule IDs and one suggestion per match
        """
        result = EvaluationResult()

        for rule in self.rules:
            try:
                hit = bool(rule.evaluator(clinic, metrics, now))
            except Exception as e:
                error = RuleEvaluationError(rule.id, clinic.slug, e)
                logger.warning(f"Skipping rule: {error}")
                result.rule_errors.append(error)
                continue

            if hit:
                result.matched.append(rule.id)
                result.suggestions.append(build_suggestion(rule, now))

        return result
