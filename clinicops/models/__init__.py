"""
Clinic Signal Engine — Models

Record types for clinics, rules, suggestions, alerts, streaks and metrics.
"""

from .alert import SEVERITY_RANK, Alert, AlertSeverity, AlertTrigger
from .base import (
    DocumentModel,
    days_since,
    epoch_ms,
    now_iso,
    now_utc,
    parse_datetime,
    to_iso,
)
from .clinic import (
    CallTracking,
    Clinic,
    ClinicStatus,
    Engagement,
    EngagementLevel,
    Scores,
    SeoMeta,
    Traffic,
    Validation,
)
from .metrics import MetricsSnapshot
from .streak import Badge, Reward, Streak, StreakCheckInput, StreakDefinition, StreakPeriod
from .tag import (
    SEVERITY_TO_SUGGESTION,
    RuleCategory,
    Severity,
    Suggestion,
    SuggestionTemplate,
    SuggestionType,
    TagRule,
)

__all__ = [
    # Base
    "DocumentModel",
    "epoch_ms",
    "now_utc",
    "now_iso",
    "to_iso",
    "parse_datetime",
    "days_since",
    # Clinic
    "Clinic",
    "ClinicStatus",
    "SeoMeta",
    "Traffic",
    "Engagement",
    "EngagementLevel",
    "Scores",
    "CallTracking",
    "Validation",
    # Metrics
    "MetricsSnapshot",
    # Tags
    "TagRule",
    "Severity",
    "RuleCategory",
    "Suggestion",
    "SuggestionTemplate",
    "SuggestionType",
    "SEVERITY_TO_SUGGESTION",
    # Alerts
    "Alert",
    "AlertSeverity",
    "AlertTrigger",
    "SEVERITY_RANK",
    # Streaks
    "Streak",
    "StreakDefinition",
    "StreakPeriod",
    "StreakCheckInput",
    "Reward",
    "Badge",
]
