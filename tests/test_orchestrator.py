"""
Tests for the batch orchestrator: passes, batching, dry runs, failure
isolation and the pass log.
"""

import time
from unittest.mock import patch

import pytest

from clinicops import config
from clinicops.config import EngineConfig, RetrySettings
from clinicops.errors import BatchFatalError
from clinicops.models import Clinic
from clinicops.orchestrator import BatchOrchestrator, JobType
from tests.fixtures import NOW, healthy_metrics


def load(store, slug: str) -> Clinic:
    return Clinic.from_store(slug, store.get(config.CLINICS_COLLECTION, slug))


class TestAuditPass:
    def test_writes_derived_fields(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin", package=None)
        result = orchestrator.run_audit()

        assert (result.processed, result.succeeded, result.failed) == (1, 1, 0)
        clinic = load(store, "summit-austin")
        assert clinic.tags == ["missing-package"]
        assert [s.tag_id for s in clinic.suggestions] == ["missing-package"]
        assert clinic.scores.severity == 95
        assert clinic.scores.seo == 100
        assert clinic.scores.engagement == 80
        assert clinic.engagement.level == "engaged"
        assert clinic.engagement.last_checked == "2024-06-12T12:00:00.000Z"

    def test_writes_seo_breakdown(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin")
        orchestrator.run_audit()

        seo_meta = store.get(config.CLINICS_COLLECTION, "summit-austin")["seoMeta"]
        assert seo_meta["score"] == 100
        assert seo_meta["components"] == {
            "metaCompleteness": 30,
            "indexingStatus": 25,
            "keywordDiversity": 25,
            "ctr": 20,
        }
        assert seo_meta["recommendations"] == []
        assert seo_meta["lastScored"] == "2024-06-12T12:00:00.000Z"
        assert seo_meta["title"] == "Summit Mens Health Clinic in Austin, Texas"

    def test_does_not_write_traffic_or_index_flag(self, orchestrator, store, add_clinic, metrics):
        add_clinic("summit-austin", traffic={"clicks30d": 3})
        metrics.default = healthy_metrics(indexed=False)
        orchestrator.run_audit()

        doc = store.get(config.CLINICS_COLLECTION, "summit-austin")
        assert doc["traffic"] == {"clicks30d": 3}
        assert doc["seoMeta"]["indexed"] is True
        assert "no-index" in doc["tags"]

    def test_status_filter(self, orchestrator, add_clinic, metrics):
        add_clinic("a")
        add_clinic("b", status="paused")
        result = orchestrator.run_audit()
        assert [e.slug for e in result.entities] == ["a"]
        assert metrics.calls == ["a"]

    def test_explicit_slugs_deduped(self, orchestrator, add_clinic):
        add_clinic("a")
        add_clinic("b", status="paused")
        result = orchestrator.run_audit(slugs=["b", "a", "b"])
        assert [e.slug for e in result.entities] == ["b", "a"]

    def test_idempotent(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin", package="free", zip=None)
        first = orchestrator.run_audit()
        after_first = store.get(config.CLINICS_COLLECTION, "summit-austin")
        second = orchestrator.run_audit()
        after_second = store.get(config.CLINICS_COLLECTION, "summit-austin")

        assert first.alerts_created == 1
        assert second.alerts_created == 0
        assert second.alerts_resolved == 0
        assert second.tag_summary.new_tags == 0
        assert after_first == after_second

    def test_summary(self, orchestrator, add_clinic):
        add_clinic("a", package=None)
        add_clinic("b", tags=["no-index"])
        summary = orchestrator.run_audit().to_dict()

        assert summary["jobType"] == JobType.TAG_AUDIT
        assert summary["totalProcessed"] == 2
        assert summary["newTags"] == 1
        assert summary["resolvedTags"] == 1
        assert summary["averageScore"] == 97.5
        assert summary["tagDistribution"] == {"missing-package": 1}
        assert summary["errors"] == []
        assert summary["perEntityErrors"] == {}
        assert summary["dryRun"] is False
        assert summary["aborted"] is False
        assert summary["decisions"]["b"]["resolved"] == ["no-index"]

    def test_pass_log_written(self, orchestrator, store, add_clinic):
        add_clinic("a")
        result = orchestrator.run_audit()

        logged = store.get(config.PASS_LOG_COLLECTION, result.run_id)
        assert logged["processed"] == 1
        assert logged["jobType"] == "tag_audit"
        assert "decisions" not in logged
        assert result.run_id.startswith("tag_audit-")


class TestDryRun:
    def test_writes_nothing(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin", package="free")
        before = store.get(config.CLINICS_COLLECTION, "summit-austin")

        result = orchestrator.run_audit(dry_run=True)

        assert result.dry_run
        assert result.alerts_created == 1
        assert store.get(config.CLINICS_COLLECTION, "summit-austin") == before
        assert store.get(config.ADMIN_COLLECTION, config.ALERT_INDEX_DOC) is None
        assert store.list(config.PASS_LOG_COLLECTION) == []

    def test_same_decisions_as_live(self, orchestrator, add_clinic):
        add_clinic("a", package="free", zip=None)
        add_clinic("b", validation=None)
        add_clinic("c", tags=["no-index"])

        dry = orchestrator.run_audit(dry_run=True).to_dict()
        live = orchestrator.run_audit().to_dict()

        assert dry["decisions"] == live["decisions"]
        for key in ("newTags", "resolvedTags", "alertsCreated", "alertsResolved"):
            assert dry[key] == live[key]


class TestScenarios:
    def test_ghost_detection(self, orchestrator, store, add_clinic, metrics):
        add_clinic("ghost-clinic-tx", package="premium")
        metrics.snapshots["ghost-clinic-tx"] = healthy_metrics(
            clicks_last_30=0,
            impressions_last_30=0,
            calls_last_30=0,
            visits_last_30=0,
            traffic_last_90=0,
            actions_last_7=0,
            engagement_rate=0.0,
            last_activity=None,
        )

        result = orchestrator.run_audit()

        clinic = load(store, "ghost-clinic-tx")
        assert "ghost-clinic" in clinic.tags
        assert clinic.scores.severity == 75
        assert clinic.engagement.level == "none"
        assert [a.type for a in clinic.alerts] == ["ghosted_premium_clinic"]
        assert result.tag_summary.critical_issues == 1

    def test_alert_resolution(self, orchestrator, store, add_clinic, metrics):
        add_clinic("summit-austin", package="free")
        orchestrator.run_audit()
        active = orchestrator.alert_index.get_active_alerts()
        assert [a.type for a in active] == ["high_traffic_free_clinic"]
        alert_id = active[0].id

        # Clinic upgrades; next pass resolves the alert
        store.update(config.CLINICS_COLLECTION, "summit-austin", {"package": "premium"})
        result = orchestrator.run_audit()

        assert result.alerts_resolved == 1
        clinic = load(store, "summit-austin")
        assert len(clinic.alerts) == 1
        assert clinic.alerts[0].resolved_at == "2024-06-12T12:00:00.000Z"
        index = store.get(config.ADMIN_COLLECTION, config.ALERT_INDEX_DOC)
        assert index["active"] == {}
        assert index["resolved"][alert_id]["clinicSlug"] == "summit-austin"

    def test_partial_batch_failure(self, orchestrator, store, add_clinic, metrics):
        slugs = [add_clinic(f"clinic-{i:02d}", package=None) for i in range(1, 11)]
        broken = slugs[3]
        metrics.broken.add(broken)
        before = store.get(config.CLINICS_COLLECTION, broken)

        result = orchestrator.run_audit()

        assert result.processed == 10
        assert result.failed == 1
        assert result.succeeded == 9
        assert list(result.per_entity_errors) == [broken]
        assert result.errors == [f"{broken}: corrupt metrics for {broken}"]
        assert store.get(config.CLINICS_COLLECTION, broken) == before
        for slug in slugs:
            if slug != broken:
                assert load(store, slug).tags == ["missing-package"]


class TestFailureModes:
    def test_metrics_outage_degrades(self, orchestrator, store, add_clinic, metrics):
        add_clinic("summit-austin")
        metrics.unavailable.add("summit-austin")

        result = orchestrator.run_audit()

        entity = result.entities[0]
        assert entity.success
        assert entity.warnings[0].startswith("metrics unavailable")
        # Zero metrics fall back to the stored index flag
        assert "no-index" not in load(store, "summit-austin").tags
        assert "ghost-clinic" in load(store, "summit-austin").tags

    def test_metrics_outage_holds_traffic_alerts(self, orchestrator, store, add_clinic, metrics):
        add_clinic("ghost-premium", package="premium")
        add_clinic("busy-free", package="free")
        orchestrator.run_audit()
        metrics.unavailable.update({"ghost-premium", "busy-free"})

        result = orchestrator.run_audit()

        assert (result.alerts_created, result.alerts_resolved) == (0, 0)
        assert load(store, "ghost-premium").alerts == []
        busy = load(store, "busy-free")
        assert [a.type for a in busy.alerts if a.is_active] == ["high_traffic_free_clinic"]
        active = orchestrator.alert_index.get_active_alerts()
        assert [a.clinic_slug for a in active] == ["busy-free"]

    def test_missing_clinic_is_entity_failure(self, orchestrator):
        result = orchestrator.run_audit(slugs=["nope"])
        assert result.failed == 1
        assert "clinics/nope not found" in result.per_entity_errors["nope"]

    def test_store_write_failure(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin", package=None)
        before = store.get(config.CLINICS_COLLECTION, "summit-austin")

        with patch.object(store, "update", side_effect=RuntimeError("disk full")):
            result = orchestrator.run_audit()

        assert result.failed == 1
        assert "write failed for summit-austin" in result.errors[0]
        assert store.get(config.CLINICS_COLLECTION, "summit-austin") == before

    def test_cannot_list_targets(self, orchestrator, store):
        with patch.object(store, "list", side_effect=RuntimeError("store offline")):
            with pytest.raises(BatchFatalError):
                orchestrator.run_audit()


class TestBatching:
    def test_delay_between_batches(self, store, metrics, add_clinic):
        for i in range(7):
            add_clinic(f"c{i}")
        sleeps = []
        orch = BatchOrchestrator(
            store,
            EngineConfig(batch_size=3, batch_delay_s=0.25),
            metrics,
            clock=lambda: NOW,
            sleep=sleeps.append,
        )

        result = orch.run_audit()

        assert result.processed == 7
        assert sleeps == [0.25, 0.25]

    def test_batch_size_override(self, orchestrator, add_clinic):
        for i in range(4):
            add_clinic(f"c{i}")
        with patch.object(orchestrator, "_run_batch", wraps=orchestrator._run_batch) as spy:
            orchestrator.run_audit(batch_size=1)
        assert spy.call_count == 4

    def test_runtime_budget_aborts(self, store, metrics, add_clinic):
        for i in range(6):
            add_clinic(f"c{i}")
        orch = BatchOrchestrator(
            store,
            EngineConfig(
                batch_size=2,
                batch_delay_s=0.01,
                max_runtime_s=0.001,
                retry=RetrySettings(max_retries=0),
            ),
            metrics,
            clock=lambda: NOW,
            sleep=time.sleep,
        )

        result = orch.run_audit()

        assert result.aborted
        assert result.processed == 2
        assert result.not_processed == ["c2", "c3", "c4", "c5"]
        assert result.to_dict()["notProcessed"] == ["c2", "c3", "c4", "c5"]


class TestStreakPass:
    def test_run_streaks(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin")
        result = orchestrator.run_streaks(streak_type="seo_indexed")

        assert result.job_type == JobType.STREAKS
        assert result.succeeded == 1
        decision = result.to_dict()["decisions"]["summit-austin"]
        assert decision["streaks"][0]["type"] == "seo_indexed"
        assert decision["streaks"][0]["count"] == 1
        assert load(store, "summit-austin").streaks["seo_indexed"].count == 1

    def test_streak_dry_run(self, orchestrator, store, add_clinic):
        add_clinic("summit-austin")
        before = store.get(config.CLINICS_COLLECTION, "summit-austin")
        result = orchestrator.run_streaks(dry_run=True)

        assert result.succeeded == 1
        assert store.get(config.CLINICS_COLLECTION, "summit-austin") == before

    def test_rewards_counted(self, orchestrator, add_clinic):
        add_clinic(
            "summit-austin",
            streaks={"seo_indexed": {"type": "seo_indexed", "count": 6, "bestCount": 6}},
        )
        result = orchestrator.run_streaks(streak_type="seo_indexed")
        assert result.to_dict()["rewardsEarned"] == 1
