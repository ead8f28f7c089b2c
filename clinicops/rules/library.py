"""
Clinic Signal Engine — Tag Rule Library

The ordered rule table. Rules are data: adding one means appending a
TagRule here, the evaluator loop never changes.
"""

import calendar
from datetime import datetime, timedelta

from clinicops.models import (
    Clinic,
    MetricsSnapshot,
    RuleCategory,
    Severity,
    SuggestionTemplate,
    TagRule,
    parse_datetime,
)

GHOST_INACTIVITY = timedelta(days=90)
OUTDATED_CONTENT_MONTHS = 6
GENERIC_PHRASES = (
    "mens health clinic",
    "testosterone replacement therapy",
    "we offer comprehensive",
)
GENERIC_CONTENT_MAX_LEN = 500

# =============================================================================
# HELPERS
# =============================================================================


def is_indexed(clinic: Clinic, metrics: MetricsSnapshot) -> bool | None:
    """Indexing status, preferring the fresh metrics value when known."""
    if metrics.indexed is not None:
        return metrics.indexed
    return clinic.seo_meta.indexed


def months_before(now: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier, clamped to the month's last day."""
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _missing(value: str | None) -> bool:
    return not value


# =============================================================================
# PREDICATES
# =============================================================================


def _no_index(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return not is_indexed(clinic, metrics)


def _seo_incomplete(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    seo = clinic.seo_meta
    return (
        _missing(seo.title)
        or _missing(seo.description)
        or _missing(clinic.seo_content)
        or len(seo.title) < 10
        or len(seo.description) < 50
    )


def _traffic_dead(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return metrics.clicks_last_30 == 0 and metrics.impressions_last_30 > 10


def _no_call_action(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return _missing(clinic.phone) and _missing(clinic.call_tracking_number)


def _missing_address(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return any(_missing(v) for v in (clinic.address, clinic.city, clinic.state, clinic.zip))


def _ghost_clinic(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    if not clinic.is_active:
        return False
    if metrics.traffic_last_90 != 0 or metrics.calls_last_30 != 0:
        return False
    last_activity = parse_datetime(metrics.last_activity)
    return last_activity is None or now - last_activity > GHOST_INACTIVITY


def _low_engagement(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return metrics.engagement_rate < 0.02 and metrics.impressions_last_30 > 50


def _duplicate_content(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    content = (clinic.seo_content or "").lower()
    if len(content) >= GENERIC_CONTENT_MAX_LEN:
        return False
    return any(phrase in content for phrase in GENERIC_PHRASES)


def _missing_package(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    return _missing(clinic.package) or clinic.is_free


def _outdated_content(clinic: Clinic, metrics: MetricsSnapshot, now: datetime) -> bool:
    last_generated = parse_datetime(clinic.seo_meta.last_generated)
    if last_generated is None:
        return True
    return last_generated < months_before(now, OUTDATED_CONTENT_MONTHS)


# =============================================================================
# RULE TABLE (evaluation order)
# =============================================================================

TAG_RULES: tuple[TagRule, ...] = (
    TagRule(
        id="no-index",
        name="Not Indexed",
        description="Clinic is not indexed by search engines",
        severity=Severity.CRITICAL,
        category=RuleCategory.SEO,
        evaluator=_no_index,
        suggestion=SuggestionTemplate(
            message="This clinic is not indexed by search engines.",
            action="Submit to Google Search Console",
            related_field="seoMeta.indexed",
        ),
    ),
    TagRule(
        id="seo-incomplete",
        name="SEO Incomplete",
        description="Missing critical SEO metadata",
        severity=Severity.HIGH,
        category=RuleCategory.SEO,
        evaluator=_seo_incomplete,
        suggestion=SuggestionTemplate(
            message="This clinic has incomplete SEO metadata.",
            action="Regenerate SEO now",
            related_field="seoMeta",
        ),
    ),
    TagRule(
        id="traffic-dead",
        name="Traffic Dead",
        description="Has impressions but no clicks",
        severity=Severity.HIGH,
        category=RuleCategory.TRAFFIC,
        evaluator=_traffic_dead,
        suggestion=SuggestionTemplate(
            message="This clinic gets impressions but no clicks.",
            action="Review content strategy or promote listing",
            related_field="seoContent",
        ),
    ),
    TagRule(
        id="no-call-action",
        name="No Call Action",
        description="Missing phone number or call tracking",
        severity=Severity.MEDIUM,
        category=RuleCategory.ENGAGEMENT,
        evaluator=_no_call_action,
        suggestion=SuggestionTemplate(
            message="This clinic has no call-to-action setup.",
            action="Add call-to-action to boost leads",
            related_field="phone",
        ),
    ),
    TagRule(
        id="missing-address",
        name="Missing Address",
        description="Incomplete location information",
        severity=Severity.MEDIUM,
        category=RuleCategory.COMPLETENESS,
        evaluator=_missing_address,
        suggestion=SuggestionTemplate(
            message="This clinic has incomplete address information.",
            action="Complete address details",
            related_field="address",
        ),
    ),
    TagRule(
        id="ghost-clinic",
        name="Ghost Clinic",
        description="Active but no activity in 90 days",
        severity=Severity.CRITICAL,
        category=RuleCategory.ENGAGEMENT,
        evaluator=_ghost_clinic,
        suggestion=SuggestionTemplate(
            message="This clinic shows no activity in 90+ days.",
            action="Consider marking as paused or deleting",
            related_field="status",
        ),
    ),
    TagRule(
        id="low-engagement",
        name="Low Engagement",
        description="Poor click-through or conversion rates",
        severity=Severity.MEDIUM,
        category=RuleCategory.ENGAGEMENT,
        evaluator=_low_engagement,
        suggestion=SuggestionTemplate(
            message="This clinic has low engagement rates.",
            action="Optimize title and description",
            related_field="seoMeta.description",
        ),
    ),
    TagRule(
        id="duplicate-content",
        name="Duplicate Content",
        description="SEO content appears to be duplicated",
        severity=Severity.MEDIUM,
        category=RuleCategory.SEO,
        evaluator=_duplicate_content,
        suggestion=SuggestionTemplate(
            message="This clinic may have duplicate or generic content.",
            action="Review and customize content",
            related_field="seoContent",
        ),
    ),
    TagRule(
        id="missing-package",
        name="Missing Package",
        description="No billing package assigned",
        severity=Severity.LOW,
        category=RuleCategory.COMPLETENESS,
        evaluator=_missing_package,
        suggestion=SuggestionTemplate(
            message="This clinic has no paid package assigned.",
            action="Upgrade clinic for call tracking",
            related_field="package",
        ),
    ),
    TagRule(
        id="outdated-content",
        name="Outdated Content",
        description="SEO content not updated in 6+ months",
        severity=Severity.LOW,
        category=RuleCategory.SEO,
        evaluator=_outdated_content,
        suggestion=SuggestionTemplate(
            message="This clinic's SEO content is outdated.",
            action="Refresh SEO content",
            related_field="seoMeta.lastGenerated",
        ),
    ),
)

RULES_BY_ID: dict[str, TagRule] = {rule.id: rule for rule in TAG_RULES}


def get_rule(rule_id: str) -> TagRule | None:
    return RULES_BY_ID.get(rule_id)


def get_rules_by_category(category: RuleCategory | str) -> list[TagRule]:
    return [rule for rule in TAG_RULES if rule.category == category]


def get_rules_by_severity(severity: Severity | str) -> list[TagRule]:
    return [rule for rule in TAG_RULES if rule.severity == severity]


def validate_rule_table(rules: tuple[TagRule, ...] = TAG_RULES) -> list[str]:
    """
    Check the table for structural problems.

    Returns:
        List of problems (empty when the table is sound)
    """
    problems = []
    seen: set[str] = set()
    for rule in rules:
        if rule.id in seen:
            problems.append(f"duplicate rule id: {rule.id}")
        seen.add(rule.id)
        if not callable(rule.evaluator):
            problems.append(f"rule {rule.id} has no evaluator")
        if not rule.suggestion.message or not rule.suggestion.action:
            problems.append(f"rule {rule.id} has an empty suggestion")
    return problems
