"""
Clinic Signal Engine — Streak Tracker

One transition function drives every streak type; ``reset_on_miss`` decides
whether a miss zeroes the count or only deactivates it. Live runs persist
the count and totalEarned with atomic increments, bestCount with an atomic
max, and badges with an array-union keyed on (streakType, streakCount).
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from clinicops import config
from clinicops.errors import DocumentNotFoundError
from clinicops.metrics_provider import MetricsProvider, fetch_metrics_safely
from clinicops.models import (
    Badge,
    Clinic,
    Streak,
    StreakCheckInput,
    StreakDefinition,
    StreakPeriod,
    parse_datetime,
    to_iso,
)
from clinicops.store import DocumentStore, get_path

from .definitions import STREAK_DEFINITIONS

logger = logging.getLogger(__name__)

BADGE_KEY = ("streakType", "streakCount")

# =============================================================================
# TRANSITION
# =============================================================================


@dataclass
class StreakOutcome:
    """Result of one streak check for one clinic."""

    type: str
    hit: bool
    skipped: bool
    streak: Streak
    reward: Badge | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "hit": self.hit,
            "skipped": self.skipped,
            "count": self.streak.count,
            "bestCount": self.streak.best_count,
            "reward": self.reward.name if self.reward else None,
        }


def same_period(last: datetime, now: datetime, period: StreakPeriod) -> bool:
    """Whether two instants fall in the same UTC day (daily) or ISO week (weekly)."""
    if period is StreakPeriod.DAILY:
        return last.date() == now.date()
    return last.isocalendar()[:2] == now.isocalendar()[:2]


def advance_streak(
    current: Streak | None,
    definition: StreakDefinition,
    hit: bool,
    now: datetime,
    earned: set[tuple[str, int]] | None = None,
) -> StreakOutcome:
    """
    Pure streak state transition.

    Args:
        current: Stored streak, or None if the clinic never had this type
        definition: Streak definition (cap, reset policy, rewards)
        hit: Whether the check passed this period
        now: Pass clock
        earned: (streakType, streakCount) pairs already in the badge list

    Returns:
        StreakOutcome with the new state and the reward to grant, if any
    """
    stamp = to_iso(now)
    streak = current or Streak(type=definition.type, name=definition.name, started_at=stamp)

    if hit:
        count = min(streak.count + 1, definition.max_count)
        new = replace(
            streak,
            count=count,
            active=True,
            last_updated=stamp,
            started_at=stamp if streak.count == 0 else streak.started_at,
            best_count=max(streak.best_count, count),
            total_earned=streak.total_earned + 1,
        )
        reward = definition.reward_for(count)
        badge = None
        if reward is not None and (definition.type, count) not in (earned or set()):
            badge = Badge(
                name=reward.badge,
                type="streak",
                earned_at=stamp,
                streak_type=definition.type,
                streak_count=count,
                points=reward.points,
            )
        return StreakOutcome(definition.type, True, False, new, badge)

    new = replace(
        streak,
        count=0 if definition.reset_on_miss else streak.count,
        active=False,
        last_updated=stamp,
    )
    return StreakOutcome(definition.type, False, False, new)


# =============================================================================
# TRACKER
# =============================================================================


@dataclass
class ClinicStreakResult:
    slug: str
    outcomes: list[StreakOutcome] = field(default_factory=list)
    rewards: list[Badge] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class StreakTracker:
    """Runs streak checks for clinics and persists the transitions."""

    def __init__(
        self,
        store: DocumentStore,
        metrics: MetricsProvider | None = None,
        definitions: tuple[StreakDefinition, ...] = STREAK_DEFINITIONS,
        window_days: int = 30,
    ):
        self.store = store
        self.metrics = metrics
        self.definitions = definitions
        self.window_days = window_days

    def track_clinic(
        self,
        clinic: Clinic,
        now: datetime,
        dry_run: bool = False,
        streak_type: str | None = None,
    ) -> ClinicStreakResult:
        """
        Check every streak type (or one) for a clinic.

        A failing streak type is logged and recorded; the others still run.
        """
        result = ClinicStreakResult(slug=clinic.slug)
        definitions = [d for d in self.definitions if streak_type in (None, d.type)]
        earned = {(b.streak_type, b.streak_count) for b in clinic.badges}

        actions_7d = 0
        if self.metrics is not None and any(d.type == "engagement_boost" for d in definitions):
            fetched = fetch_metrics_safely(self.metrics, clinic.slug, self.window_days)
            actions_7d = fetched.snapshot.actions_last_7
            if fetched.warning:
                result.warnings.append(fetched.warning)

        for definition in definitions:
            try:
                outcome = self._check(clinic, definition, now, earned, actions_7d)
                if not outcome.skipped and not dry_run:
                    outcome = self._persist(clinic.slug, definition, outcome, now)
                result.outcomes.append(outcome)
                if outcome.reward is not None:
                    result.rewards.append(outcome.reward)
                    earned.add((outcome.reward.streak_type, outcome.reward.streak_count))
            except Exception as e:
                msg = f"streak {definition.type} failed for {clinic.slug}: {e}"
                logger.error(msg)
                result.errors.append(msg)

        return result

    def _check(
        self,
        clinic: Clinic,
        definition: StreakDefinition,
        now: datetime,
        earned: set[tuple[str, int]],
        actions_7d: int,
    ) -> StreakOutcome:
        current = clinic.streaks.get(definition.type)
        last_updated = parse_datetime(current.last_updated) if current else None

        if last_updated is not None and same_period(last_updated, now, definition.period):
            return StreakOutcome(definition.type, False, True, current)

        last_check = last_updated or (now - definition.period.window)
        check_input = StreakCheckInput(
            clinic=clinic,
            last_check=last_check,
            now=now,
            reviews_since_last_check=self._count_reviews(clinic.slug, last_check),
            engagement_actions_7d=actions_7d,
        )
        hit = bool(definition.check(check_input))
        return advance_streak(current, definition, hit, now, earned)

    def _count_reviews(self, slug: str, since: datetime) -> int:
        count = 0
        for _, review in self.store.list(config.REVIEWS_COLLECTION, {"clinicSlug": slug}):
            created = parse_datetime(review.get("createdAt"))
            if created is not None and created > since:
                count += 1
        return count

    def _persist(
        self,
        slug: str,
        definition: StreakDefinition,
        outcome: StreakOutcome,
        now: datetime,
    ) -> StreakOutcome:
        """
        Write one transition. Returns the outcome as actually stored.

        The stored streak is re-read inside the write transaction: if another
        pass already checked this period, nothing is written and the outcome
        comes back skipped. On a hit the stored count comes from the atomic
        increment, and the reward is decided from that count and the
        array-union result.
        """
        base = f"streaks.{definition.type}"
        stamp = to_iso(now)
        coll = config.CLINICS_COLLECTION

        with self.store.db.transaction():
            data = self.store.get(coll, slug)
            if data is None:
                raise DocumentNotFoundError(coll, slug)
            raw = get_path(data, base)
            stored = Streak.from_doc(raw) if isinstance(raw, dict) else None

            last_updated = parse_datetime(stored.last_updated) if stored else None
            if last_updated is not None and same_period(last_updated, now, definition.period):
                logger.debug(f"{slug} {definition.type} already checked this period")
                return StreakOutcome(definition.type, False, True, stored)

            if stored is None:
                seed = Streak(type=definition.type, name=definition.name, started_at=stamp)
                self.store.update(coll, slug, {base: seed.to_doc()})

            if not outcome.hit:
                fields = {f"{base}.active": False, f"{base}.lastUpdated": stamp}
                if definition.reset_on_miss:
                    fields[f"{base}.count"] = 0
                self.store.update(coll, slug, fields)
                missed = advance_streak(stored, definition, False, now)
                return replace(outcome, streak=missed.streak)

            fields = {f"{base}.active": True, f"{base}.lastUpdated": stamp}
            if stored is None or stored.count == 0:
                fields[f"{base}.startedAt"] = stamp
            self.store.update(coll, slug, fields)

            count = self.store.atomic_increment(
                coll, slug, f"{base}.count", 1, cap=definition.max_count
            )
            total = self.store.atomic_increment(coll, slug, f"{base}.totalEarned", 1)
            best = self.store.atomic_max(coll, slug, f"{base}.bestCount", count)

            badge = None
            reward = definition.reward_for(count)
            if reward is not None:
                candidate = Badge(
                    name=reward.badge,
                    type="streak",
                    earned_at=stamp,
                    streak_type=definition.type,
                    streak_count=count,
                    points=reward.points,
                )
                added = self.store.atomic_array_union(
                    coll, slug, "badges", [candidate.to_doc()], unique_by=BADGE_KEY
                )
                if added:
                    badge = candidate
                    logger.info(f"{slug} earned '{reward.badge}' ({definition.type} x{count})")

        streak = replace(outcome.streak, count=count, total_earned=total, best_count=best)
        return replace(outcome, streak=streak, reward=badge)


# =============================================================================
# QUERIES
# =============================================================================


def get_clinic_streaks(store: DocumentStore, slug: str) -> list[Streak]:
    """All streaks stored on a clinic, in definition order then any others."""
    data = store.get(config.CLINICS_COLLECTION, slug)
    if data is None:
        return []
    streaks = Clinic.from_store(slug, data).streaks
    order = {d.type: i for i, d in enumerate(STREAK_DEFINITIONS)}
    return sorted(streaks.values(), key=lambda s: order.get(s.type, len(order)))


def get_streak_leaderboard(store: DocumentStore, streak_type: str, limit: int = 10) -> list[dict]:
    """
    Active clinics ranked by current count for one streak type.

    Clinics with a zero count are left out.
    """
    rows = []
    for slug, data in store.list(config.CLINICS_COLLECTION, {"status": "active"}):
        streak = Clinic.from_store(slug, data).streaks.get(streak_type)
        if streak is None or streak.count <= 0:
            continue
        rows.append(
            {
                "clinicSlug": slug,
                "clinicName": data.get("name", ""),
                "count": streak.count,
                "active": streak.active,
                "bestCount": streak.best_count,
            }
        )
    rows.sort(key=lambda r: r["count"], reverse=True)
    return rows[:limit]
