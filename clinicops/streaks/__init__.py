"""Streak definitions, the shared transition and the tracker."""

from .definitions import DEFINITIONS_BY_TYPE, STREAK_DEFINITIONS
from .tracker import (
    ClinicStreakResult,
    StreakOutcome,
    StreakTracker,
    advance_streak,
    get_clinic_streaks,
    get_streak_leaderboard,
    same_period,
)

__all__ = [
    "STREAK_DEFINITIONS",
    "DEFINITIONS_BY_TYPE",
    "StreakTracker",
    "StreakOutcome",
    "ClinicStreakResult",
    "advance_streak",
    "same_period",
    "get_clinic_streaks",
    "get_streak_leaderboard",
]
