"""
Clinic Signal Engine — Batch Orchestrator

Runs a pass over target clinics in fixed-size batches. Inside a batch the
clinics are processed concurrently on a bounded thread pool; between
batches the orchestrator sleeps to rate-limit store writes. A failure on
one clinic is recorded and never stops the pass. Only failing to list the
targets (BatchFatalError) aborts it.

Per-clinic audit flow:
    read clinic → metrics → rules → scores → reconcile tags
    → alert plan on the evaluated clinic → write clinic + alert index
"""

import contextvars
import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from clinicops import config
from clinicops.alerts import AlertIndex, AlertLifecycleManager, AlertPlan
from clinicops.config import EngineConfig
from clinicops.errors import BatchFatalError, DocumentNotFoundError, StoreWriteError
from clinicops.metrics_provider import MetricsProvider, fetch_metrics_safely
from clinicops.models import (
    Clinic,
    Engagement,
    MetricsSnapshot,
    Scores,
    Traffic,
    now_utc,
    to_iso,
)
from clinicops.observability import RunContext
from clinicops.resilience import RetryConfig, retry_with_backoff
from clinicops.rules import RuleEvaluator, is_indexed
from clinicops.scoring import engagement_score, engagement_status, seo_score
from clinicops.store import DocumentStore
from clinicops.streaks import StreakTracker
from clinicops.tags import ClinicAnalysis, TagSummary, analyze_clinic, summarize

logger = logging.getLogger(__name__)


class JobType(StrEnum):
    TAG_AUDIT = "tag_audit"
    STREAKS = "streak_tracking"


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class EntityResult:
    """Outcome for one clinic in one pass."""

    slug: str
    success: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    decision: dict = field(default_factory=dict)
    analysis: ClinicAnalysis | None = None
    alerts_created: int = 0
    alerts_resolved: int = 0
    rewards: int = 0


@dataclass
class PassResult:
    """Result of a complete pass."""

    job_type: str
    run_id: str
    started_at: datetime
    completed_at: datetime | None = None
    dry_run: bool = False
    aborted: bool = False
    entities: list[EntityResult] = field(default_factory=list)
    not_processed: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return len(self.entities)

    @property
    def succeeded(self) -> int:
        return sum(1 for e in self.entities if e.success)

    @property
    def failed(self) -> int:
        return sum(1 for e in self.entities if not e.success)

    @property
    def per_entity_errors(self) -> dict[str, str]:
        return {e.slug: e.error or "" for e in self.entities if not e.success}

    @property
    def errors(self) -> list[str]:
        return [f"{slug}: {msg}" for slug, msg in self.per_entity_errors.items()]

    @property
    def alerts_created(self) -> int:
        return sum(e.alerts_created for e in self.entities)

    @property
    def alerts_resolved(self) -> int:
        return sum(e.alerts_resolved for e in self.entities)

    @property
    def tag_summary(self) -> TagSummary:
        return summarize(e.analysis for e in self.entities if e.analysis is not None)

    def to_dict(self) -> dict[str, Any]:
        """Pass summary for logging, the pass log and API responses."""
        summary = self.tag_summary.to_dict()
        summary.update(
            {
                "jobType": self.job_type,
                "runId": self.run_id,
                "startedAt": to_iso(self.started_at),
                "completedAt": to_iso(self.completed_at),
                "alertsCreated": self.alerts_created,
                "alertsResolved": self.alerts_resolved,
                "rewardsEarned": sum(e.rewards for e in self.entities),
                "durationMs": self.duration_ms,
                "errors": self.errors,
                "processed": self.processed,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "perEntityErrors": self.per_entity_errors,
                "notProcessed": list(self.not_processed),
                "dryRun": self.dry_run,
                "aborted": self.aborted,
                "decisions": {e.slug: e.decision for e in self.entities if e.success},
            }
        )
        return summary


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class BatchOrchestrator:
    """
    Drives audit and streak passes over the clinic collection.

    ``clock`` is read once per pass; every clinic in the pass sees the same
    instant, so a dry run and a live run over the same snapshot decide
    identically.
    """

    def __init__(
        self,
        store: DocumentStore,
        engine_config: EngineConfig,
        metrics: MetricsProvider,
        evaluator: RuleEvaluator | None = None,
        alert_manager: AlertLifecycleManager | None = None,
        streak_tracker: StreakTracker | None = None,
        clock: Callable[[], datetime] = now_utc,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.config = engine_config
        self.metrics = metrics
        self.evaluator = evaluator or RuleEvaluator()
        self.alert_manager = alert_manager or AlertLifecycleManager()
        self.alert_index = AlertIndex(store)
        self.streak_tracker = streak_tracker or StreakTracker(
            store, metrics=metrics, window_days=engine_config.metrics_window_days
        )
        self.clock = clock
        self.sleep = sleep
        self.retry = RetryConfig.from_settings(engine_config.retry)

    # =========================================================================
    # Public passes
    # =========================================================================

    def run_audit(
        self,
        slugs: list[str] | None = None,
        dry_run: bool = False,
        batch_size: int | None = None,
    ) -> PassResult:
        """
        Tag, score and alert pass.

        Args:
            slugs: Explicit targets; default is every clinic matching the
                configured status filter
            dry_run: Compute decisions without writing anything
            batch_size: Override configured batch size

        Raises:
            BatchFatalError: if targets cannot be listed
        """
        return self._run(JobType.TAG_AUDIT, slugs, dry_run, batch_size, self._audit_entity)

    def run_streaks(
        self,
        slugs: list[str] | None = None,
        dry_run: bool = False,
        batch_size: int | None = None,
        streak_type: str | None = None,
    ) -> PassResult:
        """Streak tracking pass; optionally a single streak type."""

        def worker(slug: str, now: datetime, dry: bool) -> EntityResult:
            return self._streak_entity(slug, now, dry, streak_type)

        return self._run(JobType.STREAKS, slugs, dry_run, batch_size, worker)

    # =========================================================================
    # Pass loop
    # =========================================================================

    def _run(
        self,
        job_type: JobType,
        slugs: list[str] | None,
        dry_run: bool,
        batch_size: int | None,
        worker: Callable[[str, datetime, bool], EntityResult],
    ) -> PassResult:
        with RunContext(prefix=job_type.value) as ctx:
            now = self.clock()
            started = time.monotonic()
            result = PassResult(
                job_type=job_type, run_id=ctx.run_id, started_at=now, dry_run=dry_run
            )

            targets = self._list_targets(slugs)
            size = max(1, batch_size or self.config.batch_size)
            batches = [targets[i : i + size] for i in range(0, len(targets), size)]
            mode = " (dry run)" if dry_run else ""
            logger.info(
                f"Starting {job_type} pass{mode}: {len(targets)} clinics in {len(batches)} batches"
            )

            for number, batch in enumerate(batches, start=1):
                if number > 1 and self._over_budget(started):
                    remaining = [slug for b in batches[number - 1 :] for slug in b]
                    result.aborted = True
                    result.not_processed = remaining
                    logger.warning(
                        f"Runtime budget exceeded; stopping before batch {number}, "
                        f"{len(remaining)} clinics not processed"
                    )
                    break

                result.entities.extend(self._run_batch(batch, now, dry_run, worker))
                logger.info(f"Batch {number}/{len(batches)} complete")

                if number < len(batches) and self.config.batch_delay_s > 0:
                    self.sleep(self.config.batch_delay_s)

            result.completed_at = self.clock()
            result.duration_ms = int((time.monotonic() - started) * 1000)

            logger.info(
                f"{job_type} pass finished: processed={result.processed} "
                f"succeeded={result.succeeded} failed={result.failed} "
                f"alerts +{result.alerts_created}/-{result.alerts_resolved} "
                f"in {result.duration_ms}ms"
            )
            if not dry_run:
                self._log_pass(result)
            return result

    def _run_batch(
        self,
        batch: list[str],
        now: datetime,
        dry_run: bool,
        worker: Callable[[str, datetime, bool], EntityResult],
    ) -> list[EntityResult]:
        workers = max(1, min(self.config.max_workers, len(batch)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="clinicops") as pool:
            # Each task gets its own copy of the context so the run ID follows it
            futures = [
                pool.submit(contextvars.copy_context().run, worker, slug, now, dry_run)
                for slug in batch
            ]
            return [f.result() for f in futures]

    def _over_budget(self, started: float) -> bool:
        limit = self.config.max_runtime_s
        return limit is not None and time.monotonic() - started > limit

    def _list_targets(self, slugs: list[str] | None) -> list[str]:
        if slugs:
            return list(dict.fromkeys(slugs))
        try:
            filters = {"status": self.config.status_filter} if self.config.status_filter else None
            return [doc_id for doc_id, _ in self.store.list(config.CLINICS_COLLECTION, filters)]
        except Exception as e:
            raise BatchFatalError(f"cannot list target clinics: {e}") from e

    def _log_pass(self, result: PassResult) -> None:
        summary = result.to_dict()
        summary.pop("decisions", None)
        try:
            self.store.set(config.PASS_LOG_COLLECTION, result.run_id, summary)
        except Exception as e:
            logger.warning(f"Failed to write pass log {result.run_id}: {e}")

    # =========================================================================
    # Audit worker
    # =========================================================================

    def _audit_entity(self, slug: str, now: datetime, dry_run: bool) -> EntityResult:
        started = time.monotonic()
        try:
            clinic = self._load_clinic(slug)
            fetched = fetch_metrics_safely(self.metrics, slug, self.config.metrics_window_days)
            analysis = analyze_clinic(clinic, fetched.snapshot, now, self.evaluator)
            evaluated = self._evaluated_view(clinic, fetched.snapshot, analysis, now)
            plan = self.alert_manager.plan(
                evaluated, now, metrics_available=fetched.warning is None
            )

            if not dry_run:
                self._write_audit(evaluated, plan, now)

            warnings = list(analysis.rule_errors) + plan.trigger_errors
            if fetched.warning:
                warnings.insert(0, fetched.warning)

            return EntityResult(
                slug=slug,
                success=True,
                warnings=warnings,
                duration_seconds=time.monotonic() - started,
                decision={
                    "tags": analysis.tags,
                    "added": analysis.diff.added,
                    "resolved": analysis.diff.resolved,
                    "scores": evaluated.scores.to_doc(),
                    "engagement": evaluated.engagement_level,
                    "alerts": [t.to_dict() for t in plan.transitions],
                },
                analysis=analysis,
                alerts_created=len(plan.created),
                alerts_resolved=len(plan.resolved),
            )
        except Exception as e:
            logger.error(f"Audit failed for {slug}: {e}")
            return EntityResult(
                slug=slug,
                success=False,
                error=str(e),
                duration_seconds=time.monotonic() - started,
            )

    def _evaluated_view(
        self,
        clinic: Clinic,
        metrics: MetricsSnapshot,
        analysis: ClinicAnalysis,
        now: datetime,
    ) -> Clinic:
        """The clinic as this pass sees it: fresh traffic, scores, SEO and engagement."""
        level = engagement_status(metrics, now)
        eng_score = engagement_score(metrics)
        seo = seo_score(clinic, metrics)
        return replace(
            clinic,
            traffic=Traffic(
                clicks30d=metrics.clicks_last_30,
                calls30d=metrics.calls_last_30,
                impressions30d=metrics.impressions_last_30,
                visits30d=metrics.visits_last_30,
            ),
            seo_meta=replace(
                clinic.seo_meta,
                indexed=is_indexed(clinic, metrics),
                score=seo.total,
                components=seo.components(),
                recommendations=list(seo.recommendations),
                last_scored=to_iso(now),
            ),
            scores=Scores(seo=seo.total, severity=analysis.severity_score, engagement=eng_score),
            engagement=Engagement(level=level, score=eng_score, last_checked=to_iso(now)),
            tags=list(analysis.tags),
            suggestions=list(analysis.suggestions),
        )

    def _write_audit(self, evaluated: Clinic, plan: AlertPlan, now: datetime) -> None:
        """Overwrite derived fields and mirror alert transitions, atomically."""
        fields = {
            "tags": evaluated.tags,
            "suggestions": [s.to_doc() for s in evaluated.suggestions],
            "scores": evaluated.scores.to_doc(),
            "engagement": evaluated.engagement.to_doc() if evaluated.engagement else None,
            "alerts": [a.to_doc() for a in plan.alerts],
            "seoMeta.score": evaluated.seo_meta.score,
            "seoMeta.components": evaluated.seo_meta.components,
            "seoMeta.recommendations": evaluated.seo_meta.recommendations,
            "seoMeta.lastScored": evaluated.seo_meta.last_scored,
        }

        def write() -> None:
            with self.store.db.transaction():
                self.store.update(config.CLINICS_COLLECTION, evaluated.slug, fields)
                self.alert_index.apply(plan.created, plan.resolved, now)

        self._with_retry(write, evaluated.slug)

    # =========================================================================
    # Streak worker
    # =========================================================================

    def _streak_entity(
        self,
        slug: str,
        now: datetime,
        dry_run: bool,
        streak_type: str | None,
    ) -> EntityResult:
        started = time.monotonic()
        try:
            clinic = self._load_clinic(slug)
            tracked = self.streak_tracker.track_clinic(clinic, now, dry_run, streak_type)
            return EntityResult(
                slug=slug,
                success=True,
                warnings=tracked.warnings + tracked.errors,
                duration_seconds=time.monotonic() - started,
                decision={
                    "streaks": [o.to_dict() for o in tracked.outcomes],
                    "rewards": [b.name for b in tracked.rewards],
                },
                rewards=len(tracked.rewards),
            )
        except Exception as e:
            logger.error(f"Streak tracking failed for {slug}: {e}")
            return EntityResult(
                slug=slug,
                success=False,
                error=str(e),
                duration_seconds=time.monotonic() - started,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_clinic(self, slug: str) -> Clinic:
        data = self.store.get(config.CLINICS_COLLECTION, slug)
        if data is None:
            raise DocumentNotFoundError(config.CLINICS_COLLECTION, slug)
        return Clinic.from_store(slug, data)

    def _with_retry(self, func: Callable[[], None], slug: str) -> None:
        try:
            retry_with_backoff(func, self.retry, logger)
        except DocumentNotFoundError:
            raise
        except Exception as e:
            raise StoreWriteError(f"write failed for {slug}: {e}") from e
