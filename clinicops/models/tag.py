"""
Clinic Signal Engine — Tag Rule and Suggestion Models

A TagRule is a value object: identity, metadata and a pure predicate.
Suggestions are regenerated from matched rules on every pass.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from .base import DocumentModel

if TYPE_CHECKING:
    from .clinic import Clinic
    from .metrics import MetricsSnapshot

# =============================================================================
# ENUMS
# =============================================================================


class Severity(StrEnum):
    """Rule severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RuleCategory(StrEnum):
    """Rule grouping for dashboards."""

    SEO = "seo"
    TRAFFIC = "traffic"
    COMPLETENESS = "completeness"
    ENGAGEMENT = "engagement"
    TECHNICAL = "technical"


class SuggestionType(StrEnum):
    """How loudly a suggestion is surfaced."""

    WARNING = "warning"
    TIP = "tip"
    CRITICAL = "critical"


SEVERITY_TO_SUGGESTION = {
    Severity.CRITICAL: SuggestionType.CRITICAL,
    Severity.HIGH: SuggestionType.CRITICAL,
    Severity.MEDIUM: SuggestionType.WARNING,
    Severity.LOW: SuggestionType.TIP,
}


# =============================================================================
# RULE
# =============================================================================

RulePredicate = Callable[["Clinic", "MetricsSnapshot", datetime], bool]


@dataclass(frozen=True)
class SuggestionTemplate:
    """Static text attached to a rule."""

    message: str
    action: str
    related_field: str


@dataclass(frozen=True)
class TagRule:
    """
    Declarative tagging rule.

    The predicate receives the clinic, its metrics snapshot and the pass
    clock. It must be pure: same inputs, same answer.
    """

    id: str
    name: str
    description: str
    severity: Severity
    category: RuleCategory
    evaluator: RulePredicate
    suggestion: SuggestionTemplate

    @property
    def suggestion_type(self) -> SuggestionType:
        return SEVERITY_TO_SUGGESTION[self.severity]


# =============================================================================
# SUGGESTION
# =============================================================================


@dataclass
class Suggestion(DocumentModel):
    """Actionable hint derived from one matched rule."""

    id: str = ""
    type: str = SuggestionType.TIP
    message: str = ""
    action: str = ""
    related_field: str = ""
    created_at: str | None = None
    tag_id: str = ""
