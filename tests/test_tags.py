"""
Tests for tag reconciliation and the audit summary.
"""

from clinicops.models import Clinic, MetricsSnapshot
from clinicops.tags import analyze_clinic, reconcile, summarize
from tests.fixtures import NOW, clinic_doc, healthy_metrics


class TestReconcile:
    def test_added_and_resolved(self):
        diff = reconcile(["no-index", "missing-package"], ["missing-package", "traffic-dead"])
        assert diff.added == ["traffic-dead"]
        assert diff.resolved == ["no-index"]
        assert diff.changed

    def test_no_change(self):
        diff = reconcile(["no-index"], ["no-index"])
        assert diff.added == []
        assert diff.resolved == []
        assert not diff.changed

    def test_from_empty(self):
        assert reconcile([], ["a", "b"]).added == ["a", "b"]

    def test_to_empty(self):
        assert reconcile(["a", "b"], []).resolved == ["a", "b"]

    def test_duplicates_ignored(self):
        diff = reconcile(["a", "a"], ["b", "b"])
        assert diff.added == ["b"]
        assert diff.resolved == ["a"]


class TestAnalyzeClinic:
    def test_diff_against_stored_tags(self):
        clinic = Clinic.from_store(
            "summit-austin", clinic_doc(tags=["no-index"], package=None)
        )
        analysis = analyze_clinic(clinic, healthy_metrics(), NOW)

        assert analysis.tags == ["missing-package"]
        assert analysis.diff.added == ["missing-package"]
        assert analysis.diff.resolved == ["no-index"]
        assert analysis.severity_score == 95
        assert analysis.critical_count == 0

    def test_critical_count(self):
        clinic = Clinic.from_store("ghost", clinic_doc())
        metrics = MetricsSnapshot(indexed=False)
        analysis = analyze_clinic(clinic, metrics, NOW)
        # no-index and ghost-clinic are critical
        assert analysis.critical_count == 2


class TestSummarize:
    def test_totals(self):
        a = analyze_clinic(
            Clinic.from_store("a", clinic_doc(package=None)), healthy_metrics(), NOW
        )
        b = analyze_clinic(
            Clinic.from_store("b", clinic_doc(package=None, zip=None, tags=["missing-package"])),
            healthy_metrics(),
            NOW,
        )
        summary = summarize([a, b])

        assert summary.total_processed == 2
        assert summary.new_tags == 2
        assert summary.resolved_tags == 0
        assert summary.tag_distribution == {"missing-package": 2, "missing-address": 1}
        assert summary.average_score == 90.0

    def test_empty(self):
        summary = summarize([])
        assert summary.to_dict() == {
            "totalProcessed": 0,
            "newTags": 0,
            "resolvedTags": 0,
            "criticalIssues": 0,
            "averageScore": 0.0,
            "tagDistribution": {},
        }
