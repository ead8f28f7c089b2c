"""
Tests for the pure score functions.
"""

from datetime import timedelta

import pytest

from clinicops.models import Clinic, EngagementLevel, MetricsSnapshot
from clinicops.scoring import (
    engagement_score,
    engagement_status,
    profile_completeness_score,
    score_grade,
    seo_score,
    severity_score,
)
from tests.fixtures import NOW, clinic_doc, days_ago, healthy_metrics


def make_clinic(**overrides) -> Clinic:
    return Clinic.from_store("summit-austin", clinic_doc(**overrides))


class TestSeverityScore:
    def test_no_tags(self):
        assert severity_score([]) == 100

    def test_critical_plus_medium(self):
        assert severity_score(["no-index", "no-call-action"]) == 65

    @pytest.mark.parametrize(
        "tags,expected",
        [
            (["ghost-clinic"], 75),
            (["seo-incomplete"], 85),
            (["missing-address"], 90),
            (["outdated-content"], 95),
        ],
    )
    def test_single_penalty(self, tags, expected):
        assert severity_score(tags) == expected

    def test_unknown_tags_ignored(self):
        assert severity_score(["retired-rule", "missing-package"]) == 95

    def test_floored_at_zero(self):
        tags = ["no-index", "ghost-clinic", "seo-incomplete", "traffic-dead", "no-call-action"]
        assert severity_score(tags * 2) == 0


class TestSeoScore:
    def test_complete_profile_scores_100(self):
        result = seo_score(make_clinic(), healthy_metrics())
        assert result.total == 100
        assert result.recommendations == []
        assert score_grade(result.total) == "A+"
        assert result.components() == {
            "metaCompleteness": 30,
            "indexingStatus": 25,
            "keywordDiversity": 25,
            "ctr": 20,
        }

    def test_empty_profile(self):
        clinic = make_clinic(seoMeta={}, seoContent=None)
        result = seo_score(clinic, MetricsSnapshot.zero())
        # unknown indexing still earns 10
        assert result.total == 10
        assert result.meta_completeness == 0
        assert result.indexing_status == 10
        assert "Check Google indexing status" in result.recommendations
        assert "Increase search visibility to generate impressions" in result.recommendations

    def test_not_indexed(self):
        result = seo_score(make_clinic(), healthy_metrics(indexed=False))
        assert result.indexing_status == 0
        assert "Submit clinic page to Google for indexing" in result.recommendations

    @pytest.mark.parametrize(
        "keywords,points",
        [(0, 0), (1, 0), (2, 8), (5, 15), (9, 15), (10, 25)],
    )
    def test_keyword_tiers(self, keywords, points):
        seo = {**clinic_doc()["seoMeta"], "keywords": [f"k{i}" for i in range(keywords)]}
        assert seo_score(make_clinic(seoMeta=seo), healthy_metrics()).keyword_diversity == points

    @pytest.mark.parametrize(
        "clicks,points",
        [(50, 20), (30, 15), (10, 10), (5, 5)],
    )
    def test_ctr_tiers(self, clicks, points):
        metrics = healthy_metrics(clicks_last_30=clicks, impressions_last_30=1000)
        assert seo_score(make_clinic(), metrics).ctr == points

    def test_bounded(self):
        result = seo_score(make_clinic(), healthy_metrics())
        assert 0 <= result.total <= 100


class TestGrade:
    @pytest.mark.parametrize(
        "score,grade",
        [(95, "A+"), (90, "A+"), (85, "A"), (70, "B"), (60, "C"), (50, "D"), (49, "F")],
    )
    def test_grade(self, score, grade):
        assert score_grade(score) == grade


class TestEngagement:
    def test_score_caps(self):
        metrics = MetricsSnapshot(clicks_last_30=1000, calls_last_30=1000, visits_last_30=1000)
        assert engagement_score(metrics) == 100

    def test_score_weights(self):
        metrics = MetricsSnapshot(clicks_last_30=10, calls_last_30=2, visits_last_30=100)
        # 4 + 5 + 5
        assert engagement_score(metrics) == 14

    def test_status_thresholds_use_unrounded_score(self):
        # 40 + 0 + 9.95 rounds to 50 but stays below the engaged threshold
        metrics = MetricsSnapshot(
            clicks_last_30=124, calls_last_30=0, visits_last_30=199, last_activity=days_ago(1)
        )
        assert engagement_score(metrics) == 50
        assert engagement_status(metrics, NOW) == EngagementLevel.LOW

    def test_engaged(self):
        assert engagement_status(healthy_metrics(), NOW) == EngagementLevel.ENGAGED

    def test_engaged_by_clicks_and_calls(self):
        metrics = MetricsSnapshot(clicks_last_30=20, calls_last_30=2, last_activity=days_ago(3))
        assert engagement_status(metrics, NOW) == EngagementLevel.ENGAGED

    def test_stale_activity_downgrades_to_low(self):
        metrics = healthy_metrics(last_activity=days_ago(8))
        assert engagement_status(metrics, NOW) == EngagementLevel.LOW

    def test_missing_activity_downgrades_to_low(self):
        metrics = healthy_metrics(last_activity=None)
        assert engagement_status(metrics, NOW) == EngagementLevel.LOW

    def test_low(self):
        assert engagement_status(MetricsSnapshot(calls_last_30=1), NOW) == EngagementLevel.LOW
        assert engagement_status(MetricsSnapshot(clicks_last_30=5), NOW) == EngagementLevel.LOW

    def test_none(self):
        assert engagement_status(MetricsSnapshot.zero(), NOW) == EngagementLevel.NONE

    def test_uses_pass_clock(self):
        metrics = healthy_metrics(last_activity=days_ago(6))
        assert engagement_status(metrics, NOW) == EngagementLevel.ENGAGED
        assert engagement_status(metrics, NOW + timedelta(days=2)) == EngagementLevel.LOW


class TestProfileCompleteness:
    def test_full_profile(self):
        assert profile_completeness_score(make_clinic()) == 100

    def test_free_plan_loses_package_points(self):
        assert profile_completeness_score(make_clinic(package="free")) == 85

    def test_empty_profile(self):
        clinic = Clinic(slug="blank")
        assert profile_completeness_score(clinic) == 0
