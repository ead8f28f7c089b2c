"""
Clinic Signal Engine — Streak Definitions

Code-defined streak types with their check, reset policy and reward table.
"""

from datetime import timedelta

from clinicops.models import (
    Reward,
    StreakCheckInput,
    StreakDefinition,
    StreakPeriod,
    parse_datetime,
)
from clinicops.scoring import profile_completeness_score

CONTENT_FRESHNESS_WINDOW = timedelta(days=7)
ENGAGEMENT_ACTIONS_PER_WEEK = 5
SEO_SCORE_THRESHOLD = 80


def _profile_updated(ctx: StreakCheckInput) -> bool:
    updated = parse_datetime(ctx.clinic.updated_at)
    return updated is not None and updated > ctx.last_check


def _seo_indexed(ctx: StreakCheckInput) -> bool:
    return ctx.clinic.seo_meta.indexed is True


def _reviews_collected(ctx: StreakCheckInput) -> bool:
    return ctx.reviews_since_last_check > 0


def _content_fresh(ctx: StreakCheckInput) -> bool:
    if not ctx.clinic.seo_content:
        return False
    updated = parse_datetime(ctx.clinic.updated_at)
    return updated is not None and ctx.now - updated <= CONTENT_FRESHNESS_WINDOW


def _engagement_boost(ctx: StreakCheckInput) -> bool:
    return ctx.engagement_actions_7d >= ENGAGEMENT_ACTIONS_PER_WEEK


def _seo_score_high(ctx: StreakCheckInput) -> bool:
    return profile_completeness_score(ctx.clinic) >= SEO_SCORE_THRESHOLD


STREAK_DEFINITIONS: tuple[StreakDefinition, ...] = (
    StreakDefinition(
        type="profile_updates",
        name="Profile Perfectionist",
        description="Update your profile information daily",
        period=StreakPeriod.DAILY,
        reset_on_miss=True,
        max_count=365,
        rewards=(
            Reward(3, "Profile Starter", 50),
            Reward(7, "Weekly Updater", 100),
            Reward(30, "Monthly Master", 300),
            Reward(90, "Profile Pro", 500),
        ),
        check=_profile_updated,
    ),
    StreakDefinition(
        type="seo_indexed",
        name="SEO Consistency",
        description="Keep your clinic indexed in search engines",
        period=StreakPeriod.DAILY,
        reset_on_miss=False,
        max_count=365,
        rewards=(
            Reward(7, "Search Visible", 100),
            Reward(30, "SEO Steady", 200),
            Reward(90, "Index Champion", 500),
        ),
        check=_seo_indexed,
    ),
    StreakDefinition(
        type="reviews_collected",
        name="Review Collector",
        description="Collect patient reviews regularly",
        period=StreakPeriod.WEEKLY,
        reset_on_miss=True,
        max_count=52,
        rewards=(
            Reward(2, "Review Starter", 100),
            Reward(4, "Feedback Collector", 200),
            Reward(8, "Review Master", 400),
        ),
        check=_reviews_collected,
    ),
    StreakDefinition(
        type="content_freshness",
        name="Content Creator",
        description="Update your content regularly",
        period=StreakPeriod.WEEKLY,
        reset_on_miss=True,
        max_count=52,
        rewards=(
            Reward(2, "Content Starter", 75),
            Reward(4, "Content Creator", 150),
            Reward(12, "Content Master", 300),
        ),
        check=_content_fresh,
    ),
    StreakDefinition(
        type="engagement_boost",
        name="Engagement Expert",
        description="Maintain high engagement (calls + clicks) weekly",
        period=StreakPeriod.WEEKLY,
        reset_on_miss=True,
        max_count=52,
        rewards=(
            Reward(2, "Engagement Starter", 100),
            Reward(4, "Popular Clinic", 200),
            Reward(8, "Engagement Expert", 400),
        ),
        check=_engagement_boost,
    ),
    StreakDefinition(
        type="seo_score_high",
        name="SEO Excellence",
        description="Maintain SEO score above 80",
        period=StreakPeriod.DAILY,
        reset_on_miss=False,
        max_count=365,
        rewards=(
            Reward(7, "SEO Strong", 150),
            Reward(30, "SEO Expert", 300),
            Reward(90, "SEO Legend", 600),
        ),
        check=_seo_score_high,
    ),
)

DEFINITIONS_BY_TYPE: dict[str, StreakDefinition] = {d.type: d for d in STREAK_DEFINITIONS}
