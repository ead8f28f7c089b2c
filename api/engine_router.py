"""
Signal engine API router.

REST endpoints for the admin dashboard:
- Trigger audit and streak passes (dry run supported)
- Active alerts and manual resolution
- Per-clinic tags/scores/streaks
- Streak leaderboards
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import require_auth
from api.response_models import (
    AuditPassRequest,
    DetailResponse,
    ListResponse,
    MutationResponse,
    PassSummaryResponse,
    StreakPassRequest,
)
from clinicops.errors import BatchFatalError, DocumentNotFoundError
from clinicops.service import SignalEngine
from clinicops.streaks import DEFINITIONS_BY_TYPE

logger = logging.getLogger(__name__)

engine_router = APIRouter(
    prefix="/api/v1",
    tags=["Signal Engine"],
    dependencies=[Depends(require_auth)],
)

_engine: SignalEngine | None = None


def set_engine(engine: SignalEngine | None) -> None:
    """Install the engine instance used by the endpoints."""
    global _engine
    _engine = engine


def has_engine() -> bool:
    return _engine is not None


def get_engine() -> SignalEngine:
    """Dependency returning the configured engine."""
    if _engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return _engine


# ==== Passes ====


@engine_router.post("/passes/audit", response_model=PassSummaryResponse)
def run_audit_pass(
    body: AuditPassRequest | None = None,
    engine: SignalEngine = Depends(get_engine),
) -> dict:
    """Run a tag/score/alert pass and return its summary."""
    body = body or AuditPassRequest()
    try:
        result = engine.run_audit(
            slugs=body.slugs, dry_run=body.dry_run, batch_size=body.batch_size
        )
    except BatchFatalError as e:
        logger.error(f"Audit pass aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return result.to_dict()


@engine_router.post("/passes/streaks", response_model=PassSummaryResponse)
def run_streak_pass(
    body: StreakPassRequest | None = None,
    engine: SignalEngine = Depends(get_engine),
) -> dict:
    """Run a streak pass and return its summary."""
    body = body or StreakPassRequest()
    if body.streak_type and body.streak_type not in DEFINITIONS_BY_TYPE:
        raise HTTPException(status_code=400, detail=f"Unknown streak type: {body.streak_type}")
    try:
        result = engine.run_streaks(
            slugs=body.slugs,
            dry_run=body.dry_run,
            batch_size=body.batch_size,
            streak_type=body.streak_type,
        )
    except BatchFatalError as e:
        logger.error(f"Streak pass aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return result.to_dict()


# ==== Alerts ====


@engine_router.get("/alerts/active", response_model=ListResponse)
def list_active_alerts(
    limit: int = Query(50, ge=1, le=500),
    engine: SignalEngine = Depends(get_engine),
) -> dict:
    """Active alerts, critical first, newest first within a severity."""
    alerts = engine.get_active_alerts(limit)
    return {"items": [a.to_doc() for a in alerts], "total": len(alerts)}


@engine_router.post("/alerts/{alert_id}/resolve", response_model=MutationResponse)
def resolve_alert(alert_id: str, engine: SignalEngine = Depends(get_engine)) -> dict:
    """Manually resolve an active alert."""
    alert = engine.resolve_alert_by_id(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail=f"No active alert {alert_id}")
    return {"success": True, "alert": alert.to_doc()}


# ==== Clinics ====


@engine_router.get("/clinics/{slug}/signals", response_model=DetailResponse)
def get_clinic_signals(slug: str, engine: SignalEngine = Depends(get_engine)) -> dict:
    """Tags, suggestions, scores, the SEO breakdown, alerts, streaks and badges for one clinic."""
    try:
        return engine.get_clinic_signals(slug)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


# ==== Streaks ====


@engine_router.get("/streaks/{streak_type}/leaderboard", response_model=ListResponse)
def streak_leaderboard(
    streak_type: str,
    limit: int = Query(10, ge=1, le=100),
    engine: SignalEngine = Depends(get_engine),
) -> dict:
    """Active clinics ranked by current streak count."""
    if streak_type not in DEFINITIONS_BY_TYPE:
        raise HTTPException(status_code=404, detail=f"Unknown streak type: {streak_type}")
    rows = engine.get_streak_leaderboard(streak_type, limit)
    return {"items": rows, "total": len(rows)}
