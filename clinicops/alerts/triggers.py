"""
Clinic Signal Engine — Alert Triggers

Each trigger is a named condition over the clinic as evaluated in the
current pass. Triggers and tag rules are independent: a tag never creates
an alert by itself.
"""

from datetime import datetime, timedelta

from clinicops.models import (
    AlertSeverity,
    AlertTrigger,
    Clinic,
    EngagementLevel,
    parse_datetime,
)

HIGH_TRAFFIC_CLICKS = 50
VERIFICATION_GRACE = timedelta(days=7)
LOW_SEO_SCORE = 50


def is_paid(clinic: Clinic) -> bool:
    """Has a package and it is not the free plan."""
    return bool(clinic.package) and not clinic.is_free


def _engaged(clinic: Clinic) -> bool:
    return clinic.engagement_level == EngagementLevel.ENGAGED


def _high_traffic_free(clinic: Clinic, now: datetime) -> bool:
    return clinic.is_free and clinic.traffic.clicks30d >= HIGH_TRAFFIC_CLICKS and _engaged(clinic)


def _ghosted_premium(clinic: Clinic, now: datetime) -> bool:
    return (
        clinic.is_premium
        and clinic.traffic.clicks30d == 0
        and clinic.traffic.calls30d == 0
        and clinic.is_active
    )


def _incomplete_verification(clinic: Clinic, now: datetime) -> bool:
    if not is_paid(clinic):
        return False
    if clinic.validation is not None and clinic.validation.status == "verified":
        return False
    created = parse_datetime(clinic.created_at)
    return created is not None and now - created > VERIFICATION_GRACE


def _premium_not_indexed(clinic: Clinic, now: datetime) -> bool:
    return clinic.is_premium and clinic.seo_meta.indexed is False


def _low_seo_score_paid(clinic: Clinic, now: datetime) -> bool:
    return is_paid(clinic) and clinic.scores.seo < LOW_SEO_SCORE


def _missing_call_tracking(clinic: Clinic, now: datetime) -> bool:
    tracking_on = clinic.call_tracking is not None and clinic.call_tracking.enabled
    return _engaged(clinic) and not tracking_on and is_paid(clinic)


ALERT_TRIGGERS: tuple[AlertTrigger, ...] = (
    AlertTrigger(
        type="high_traffic_free_clinic",
        severity=AlertSeverity.WARN,
        condition=_high_traffic_free,
        title=lambda c: f"High-Traffic Free Clinic: {c.name}",
        message=lambda c: (
            f"{c.name} has {c.traffic.clicks30d} clicks but is on free plan. Upgrade opportunity!"
        ),
        action_required=True,
        uses_metrics=True,
    ),
    AlertTrigger(
        type="ghosted_premium_clinic",
        severity=AlertSeverity.CRITICAL,
        condition=_ghosted_premium,
        title=lambda c: f"Ghosted Premium Client: {c.name}",
        message=lambda c: f"{c.name} is paying for {c.package} but has 0 traffic. Needs attention!",
        action_required=True,
        uses_metrics=True,
    ),
    AlertTrigger(
        type="incomplete_verification",
        severity=AlertSeverity.WARN,
        condition=_incomplete_verification,
        title=lambda c: f"Incomplete Verification: {c.name}",
        message=lambda c: (
            f"{c.name} has been unverified for over 7 days. Complete verification process."
        ),
        action_required=True,
    ),
    AlertTrigger(
        type="premium_not_indexed",
        severity=AlertSeverity.CRITICAL,
        condition=_premium_not_indexed,
        title=lambda c: f"Premium Clinic Not Indexed: {c.name}",
        message=lambda c: f"{c.name} is paying {c.package} but not indexed by Google. SEO issue!",
        action_required=True,
    ),
    AlertTrigger(
        type="low_seo_score_paid",
        severity=AlertSeverity.WARN,
        condition=_low_seo_score_paid,
        title=lambda c: f"Low SEO Score: {c.name}",
        message=lambda c: f"{c.name} has SEO score of {c.scores.seo}/100. Needs optimization.",
        action_required=False,
        uses_metrics=True,
    ),
    AlertTrigger(
        type="missing_call_tracking",
        severity=AlertSeverity.INFO,
        condition=_missing_call_tracking,
        title=lambda c: f"Missing Call Tracking: {c.name}",
        message=lambda c: f"{c.name} is engaged but missing call tracking. Revenue opportunity!",
        action_required=False,
        uses_metrics=True,
    ),
)
