"""
Clinic Signal Engine — Score Calculator

Pure scoring functions. Each score is an integer 0-100 recomputed from
scratch every pass; nothing here reads the store or the wall clock.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from clinicops.models import (
    Clinic,
    EngagementLevel,
    MetricsSnapshot,
    Severity,
    parse_datetime,
)
from clinicops.rules.library import RULES_BY_ID, is_indexed

# =============================================================================
# SEVERITY SCORE
# =============================================================================

SEVERITY_PENALTIES = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}


def severity_score(tags: Iterable[str]) -> int:
    """
    Health score from a tag set: 100 minus a penalty per matched rule.

    Unknown tag IDs are ignored. Floored at 0.
    """
    score = 100
    for tag_id in tags:
        rule = RULES_BY_ID.get(tag_id)
        if rule is not None:
            score -= SEVERITY_PENALTIES[rule.severity]
    return max(0, score)


# =============================================================================
# SEO COMPONENT SCORE
# =============================================================================


@dataclass
class SeoScoreResult:
    """SEO score with its components and what to fix."""

    total: int = 0
    meta_completeness: int = 0
    indexing_status: int = 0
    keyword_diversity: int = 0
    ctr: int = 0
    recommendations: list[str] = field(default_factory=list)

    def components(self) -> dict[str, int]:
        """Component points keyed as stored under seoMeta.components."""
        return {
            "metaCompleteness": self.meta_completeness,
            "indexingStatus": self.indexing_status,
            "keywordDiversity": self.keyword_diversity,
            "ctr": self.ctr,
        }


def seo_score(clinic: Clinic, metrics: MetricsSnapshot) -> SeoScoreResult:
    """
    SEO score from four clamped components.

    meta completeness 0-30, indexing 0-25, keyword diversity 0-25, CTR 0-20.
    """
    result = SeoScoreResult()
    seo = clinic.seo_meta

    # 1. Meta completeness
    meta = 0
    if seo.title and len(seo.title) >= 30:
        meta += 10
    else:
        result.recommendations.append("Add comprehensive meta title (30+ characters)")
    if seo.description and len(seo.description) >= 120:
        meta += 10
    else:
        result.recommendations.append("Add detailed meta description (120+ characters)")
    if clinic.seo_content and len(clinic.seo_content) >= 500:
        meta += 10
    else:
        result.recommendations.append("Expand content to 500+ words for better SEO")
    result.meta_completeness = min(meta, 30)

    # 2. Indexing status
    indexed = is_indexed(clinic, metrics)
    if indexed is True:
        result.indexing_status = 25
    elif indexed is False:
        result.indexing_status = 0
        result.recommendations.append("Submit clinic page to Google for indexing")
    else:
        result.indexing_status = 10
        result.recommendations.append("Check Google indexing status")

    # 3. Keyword diversity
    keyword_count = len(seo.keywords or [])
    if keyword_count >= 10:
        result.keyword_diversity = 25
    elif keyword_count >= 5:
        result.keyword_diversity = 15
    elif keyword_count >= 2:
        result.keyword_diversity = 8
    else:
        result.recommendations.append("Add more relevant keywords for better search visibility")

    # 4. CTR
    impressions = metrics.impressions_last_30
    if impressions > 0:
        ctr = metrics.clicks_last_30 / impressions * 100
        if ctr >= 5:
            result.ctr = 20
        elif ctr >= 3:
            result.ctr = 15
        elif ctr >= 1:
            result.ctr = 10
        else:
            result.ctr = 5
            result.recommendations.append(
                "Optimize meta titles/descriptions to improve click-through rate"
            )
    else:
        result.recommendations.append("Increase search visibility to generate impressions")

    total = (
        result.meta_completeness + result.indexing_status + result.keyword_diversity + result.ctr
    )
    result.total = max(0, min(100, round(total)))
    return result


def score_grade(score: int) -> str:
    """Letter grade for a 0-100 score."""
    if score >= 90:
        return "A+"
    if score >= 80:
        return "A"
    if score >= 70:
        return "B"
    if score >= 60:
        return "C"
    if score >= 50:
        return "D"
    return "F"


# =============================================================================
# ENGAGEMENT
# =============================================================================

RECENT_ACTIVITY_WINDOW = timedelta(days=7)


def _weighted_engagement(metrics: MetricsSnapshot) -> float:
    """Clicks up to 40, calls up to 50, visits up to 10. Unrounded."""
    return (
        min(metrics.clicks_last_30 * 0.4, 40)
        + min(metrics.calls_last_30 * 2.5, 50)
        + min(metrics.visits_last_30 * 0.05, 10)
    )


def engagement_score(metrics: MetricsSnapshot) -> int:
    """Weighted engagement score, rounded."""
    return round(_weighted_engagement(metrics))


def engagement_status(metrics: MetricsSnapshot, now: datetime) -> EngagementLevel:
    """
    Classify engagement as engaged, low or none.

    An otherwise engaged clinic with no activity in the last seven days is
    downgraded to low.
    """
    raw = _weighted_engagement(metrics)
    clicks = metrics.clicks_last_30
    calls = metrics.calls_last_30

    if raw >= 50 or (clicks >= 20 and calls >= 2):
        level = EngagementLevel.ENGAGED
    elif raw >= 15 or clicks >= 5 or calls >= 1:
        level = EngagementLevel.LOW
    else:
        level = EngagementLevel.NONE

    if level is EngagementLevel.ENGAGED:
        last_activity = parse_datetime(metrics.last_activity)
        if last_activity is None or now - last_activity > RECENT_ACTIVITY_WINDOW:
            level = EngagementLevel.LOW

    return level


# =============================================================================
# PROFILE COMPLETENESS
# =============================================================================


def profile_completeness_score(clinic: Clinic) -> int:
    """Profile completeness used by the SEO-excellence streak."""
    seo = clinic.seo_meta
    score = 0
    if clinic.name:
        score += 5
    if clinic.address:
        score += 5
    if clinic.phone:
        score += 5
    if clinic.website:
        score += 5
    if clinic.services:
        score += 10
    if seo.description:
        score += 10
    if seo.title:
        score += 10
    if seo.keywords:
        score += 10
    if clinic.seo_content:
        score += 10
    if clinic.rating is not None and clinic.rating > 4:
        score += 15
    if clinic.package and not clinic.is_free:
        score += 15
    return min(score, 100)
