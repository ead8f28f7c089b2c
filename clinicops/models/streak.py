"""
Clinic Signal Engine — Streak Models
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from .base import DocumentModel

if TYPE_CHECKING:
    from datetime import datetime

    from .clinic import Clinic


class StreakPeriod(StrEnum):
    """How often a streak condition is checked."""

    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def window(self) -> timedelta:
        return timedelta(days=1) if self is StreakPeriod.DAILY else timedelta(days=7)


@dataclass(frozen=True)
class Reward:
    """Badge granted when a streak count reaches ``count``."""

    count: int
    badge: str
    points: int


@dataclass(frozen=True)
class StreakCheckInput:
    """Everything a streak condition may look at."""

    clinic: "Clinic"
    last_check: "datetime"
    now: "datetime"
    reviews_since_last_check: int = 0
    engagement_actions_7d: int = 0


@dataclass(frozen=True)
class StreakDefinition:
    """Code-defined streak type."""

    type: str
    name: str
    description: str
    period: StreakPeriod
    reset_on_miss: bool
    max_count: int
    rewards: tuple[Reward, ...]
    check: Callable[[StreakCheckInput], bool]

    def reward_for(self, count: int) -> Reward | None:
        for reward in self.rewards:
            if reward.count == count:
                return reward
        return None


@dataclass
class Streak(DocumentModel):
    """Per-clinic counter state for one streak type."""

    type: str = ""
    name: str = ""
    count: int = 0
    active: bool = False
    last_updated: str | None = None
    started_at: str | None = None
    best_count: int = 0
    total_earned: int = 0


@dataclass
class Badge(DocumentModel):
    """Reward badge stored on the clinic; unique per (streak_type, streak_count)."""

    name: str = ""
    type: str = "streak"
    earned_at: str | None = None
    streak_type: str = ""
    streak_count: int = 0
    points: int = 0
