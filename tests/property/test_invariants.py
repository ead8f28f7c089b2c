"""
Property-based tests for engine invariants using Hypothesis.

These tests stress scores, tag reconciliation, streak transitions and the
alert lifecycle with random inputs.
"""

from collections import Counter
from dataclasses import replace
from datetime import timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from clinicops.alerts import AlertLifecycleManager
from clinicops.models import (
    Clinic,
    Engagement,
    EngagementLevel,
    MetricsSnapshot,
    Scores,
    Streak,
    Traffic,
)
from clinicops.rules import TAG_RULES
from clinicops.scoring import engagement_score, severity_score
from clinicops.streaks import STREAK_DEFINITIONS, advance_streak
from clinicops.tags import reconcile
from tests.fixtures import NOW, clinic_doc

RULE_IDS = [rule.id for rule in TAG_RULES]
tag_lists = st.lists(st.sampled_from(RULE_IDS + ["unknown-tag"]), max_size=15)

# ============================================================================
# Severity Score
# ============================================================================


@given(tag_lists)
def test_severity_score_bounded(tags: list[str]):
    assert 0 <= severity_score(tags) <= 100


@given(tag_lists, st.sampled_from(RULE_IDS))
def test_severity_score_never_rises_with_more_tags(tags: list[str], extra: str):
    assert severity_score(tags + [extra]) <= severity_score(tags)


# ============================================================================
# Tag Reconciliation
# ============================================================================


@given(tag_lists, tag_lists)
def test_reconcile_partitions(previous: list[str], matched: list[str]):
    diff = reconcile(previous, matched)
    assert set(diff.added) == set(matched) - set(previous)
    assert set(diff.resolved) == set(previous) - set(matched)
    assert len(diff.added) == len(set(diff.added))
    assert len(diff.resolved) == len(set(diff.resolved))


@given(tag_lists)
def test_reconcile_same_set_is_quiet(tags: list[str]):
    assert not reconcile(tags, list(reversed(tags))).changed


# ============================================================================
# Engagement Score
# ============================================================================


counts = st.integers(min_value=0, max_value=100_000)


@given(counts, counts, counts)
def test_engagement_score_bounded(clicks: int, calls: int, visits: int):
    metrics = MetricsSnapshot(clicks_last_30=clicks, calls_last_30=calls, visits_last_30=visits)
    assert 0 <= engagement_score(metrics) <= 100


# ============================================================================
# Streak Transitions
# ============================================================================


@settings(max_examples=50)
@given(st.sampled_from(STREAK_DEFINITIONS), st.lists(st.booleans(), max_size=60))
def test_streak_counters_consistent(definition, hits: list[bool]):
    streak: Streak | None = None
    earned: set[tuple[str, int]] = set()
    best_seen = 0
    for day, hit in enumerate(hits):
        outcome = advance_streak(streak, definition, hit, NOW + timedelta(days=day), earned)
        streak = outcome.streak
        if outcome.reward is not None:
            key = (outcome.reward.streak_type, outcome.reward.streak_count)
            assert key not in earned
            earned.add(key)

        assert 0 <= streak.count <= definition.max_count
        assert streak.best_count >= streak.count
        assert streak.best_count >= best_seen
        assert streak.active == hit
        best_seen = streak.best_count

    if streak is not None:
        assert streak.total_earned == sum(hits)


# ============================================================================
# Alert Lifecycle
# ============================================================================


def _clinic(package: str, clicks: int, seo: int) -> Clinic:
    clinic = Clinic.from_store("summit-austin", clinic_doc(package=package))
    return replace(
        clinic,
        traffic=Traffic(clicks30d=clicks, calls30d=12 if clicks else 0),
        scores=Scores(seo=seo, severity=100, engagement=80),
        engagement=Engagement(
            level=EngagementLevel.ENGAGED if clicks else EngagementLevel.NONE, score=80
        ),
    )


pass_inputs = st.tuples(
    st.sampled_from(["free", "basic", "premium"]),
    st.sampled_from([0, 10, 120]),
    st.sampled_from([20, 60, 100]),
)


@settings(max_examples=50)
@given(st.lists(pass_inputs, min_size=1, max_size=12))
def test_at_most_one_active_alert_per_type(passes):
    manager = AlertLifecycleManager()
    alerts = []
    for day, (package, clicks, seo) in enumerate(passes):
        clinic = replace(_clinic(package, clicks, seo), alerts=alerts)
        plan = manager.plan(clinic, NOW + timedelta(days=day))
        alerts = plan.alerts

        active = Counter(a.type for a in alerts if a.is_active)
        assert all(n == 1 for n in active.values())
        assert len({a.id for a in alerts}) == len(alerts)
