"""
Clinic Signal Engine — Service

Wires the store, config, metrics provider and orchestrator together and
exposes the operations the CLI and HTTP API call.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from clinicops import config
from clinicops.alerts import AlertIndex
from clinicops.config import EngineConfig, load_engine_config
from clinicops.errors import DocumentNotFoundError
from clinicops.metrics_provider import MetricsProvider, build_metrics_provider
from clinicops.models import Alert, Clinic, Streak
from clinicops.orchestrator import BatchOrchestrator, PassResult
from clinicops.scoring import score_grade
from clinicops.store import Database, DocumentStore
from clinicops.streaks import get_clinic_streaks, get_streak_leaderboard

logger = logging.getLogger(__name__)


class SignalEngine:
    """Facade over one document store."""

    def __init__(
        self,
        store: DocumentStore,
        engine_config: EngineConfig | None = None,
        metrics: MetricsProvider | None = None,
        **orchestrator_kwargs: Any,
    ):
        self.store = store
        self.config = engine_config or load_engine_config()
        self.metrics = metrics or build_metrics_provider(self.config.metrics, store)
        self.orchestrator = BatchOrchestrator(
            store, self.config, self.metrics, **orchestrator_kwargs
        )
        self.alert_index = AlertIndex(store)

    @classmethod
    def open(
        cls, db_path: str | Path | None = None, config_path: Path | None = None
    ) -> "SignalEngine":
        """Engine over the SQLite store at db_path (default: paths.db_path())."""
        store = DocumentStore(Database(db_path))
        return cls(store, load_engine_config(config_path))

    def close(self) -> None:
        self.metrics.close()
        self.store.db.close()

    # =========================================================================
    # Passes
    # =========================================================================

    def run_audit(
        self,
        slugs: list[str] | None = None,
        dry_run: bool = False,
        batch_size: int | None = None,
    ) -> PassResult:
        return self.orchestrator.run_audit(slugs=slugs, dry_run=dry_run, batch_size=batch_size)

    def run_streaks(
        self,
        slugs: list[str] | None = None,
        dry_run: bool = False,
        batch_size: int | None = None,
        streak_type: str | None = None,
    ) -> PassResult:
        return self.orchestrator.run_streaks(
            slugs=slugs, dry_run=dry_run, batch_size=batch_size, streak_type=streak_type
        )

    # =========================================================================
    # Read-only queries
    # =========================================================================

    def get_active_alerts(self, limit: int = 50) -> list[Alert]:
        return self.alert_index.get_active_alerts(limit)

    def resolve_alert_by_id(self, alert_id: str, now: datetime | None = None) -> Alert | None:
        return self.alert_index.resolve_alert_by_id(alert_id, now)

    def get_clinic(self, slug: str) -> Clinic:
        data = self.store.get(config.CLINICS_COLLECTION, slug)
        if data is None:
            raise DocumentNotFoundError(config.CLINICS_COLLECTION, slug)
        return Clinic.from_store(slug, data)

    def get_clinic_signals(self, slug: str) -> dict[str, Any]:
        """Engine-owned fields of one clinic, for dashboards."""
        clinic = self.get_clinic(slug)
        seo_score = clinic.seo_meta.score
        grade = score_grade(seo_score) if seo_score is not None else None
        return {
            "slug": clinic.slug,
            "name": clinic.name,
            "tags": clinic.tags,
            "suggestions": [s.to_doc() for s in clinic.suggestions],
            "scores": clinic.scores.to_doc(),
            "seo": {
                "score": seo_score,
                "grade": grade,
                "components": clinic.seo_meta.components,
                "recommendations": clinic.seo_meta.recommendations,
                "lastScored": clinic.seo_meta.last_scored,
            },
            "engagement": clinic.engagement.to_doc() if clinic.engagement else None,
            "alerts": [a.to_doc() for a in clinic.alerts],
            "streaks": [s.to_doc() for s in get_clinic_streaks(self.store, slug)],
            "badges": [b.to_doc() for b in clinic.badges],
        }

    def get_clinic_streaks(self, slug: str) -> list[Streak]:
        return get_clinic_streaks(self.store, slug)

    def get_streak_leaderboard(self, streak_type: str, limit: int = 10) -> list[dict]:
        return get_streak_leaderboard(self.store, streak_type, limit)
