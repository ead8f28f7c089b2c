"""
Clinic Signal Engine — Metrics Snapshot
"""

from dataclasses import dataclass

from .base import DocumentModel


@dataclass
class MetricsSnapshot(DocumentModel):
    """
    Point-in-time traffic metrics for one clinic.

    Treated as immutable input for the duration of a pass. ``indexed`` is
    None when the provider does not know the indexing status.
    """

    clicks_last_30: int = 0
    impressions_last_30: int = 0
    calls_last_30: int = 0
    visits_last_30: int = 0
    traffic_last_90: int = 0
    actions_last_7: int = 0
    engagement_rate: float = 0.0
    last_activity: str | None = None
    indexed: bool | None = None

    @classmethod
    def zero(cls) -> "MetricsSnapshot":
        """Degraded snapshot used when the provider is unavailable."""
        return cls()
