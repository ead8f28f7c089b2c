"""
Clinic Signal Engine — Alert Models

Alerts are lifecycle-tracked incidents: created once per (clinic, trigger
type) while the condition holds, resolved when it clears, never deleted.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .base import DocumentModel

if TYPE_CHECKING:
    from datetime import datetime

    from .clinic import Clinic


class AlertSeverity(StrEnum):
    """Alert severity."""

    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"


# Sort weight for active-alert listings
SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 3,
    AlertSeverity.WARN: 2,
    AlertSeverity.INFO: 1,
}


@dataclass
class Alert(DocumentModel):
    """Persistent alert record, mirrored into the global alert index."""

    id: str = ""
    type: str = ""
    severity: str = AlertSeverity.INFO
    title: str = ""
    message: str = ""
    clinic_slug: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    resolved_at: str | None = None
    action_required: bool = False

    @property
    def is_active(self) -> bool:
        return self.resolved_at is None


@dataclass(frozen=True)
class AlertTrigger:
    """
    Named condition that drives one alert type.

    ``condition`` sees the clinic as evaluated in the current pass (fresh
    traffic, scores and engagement) and the pass clock.
    ``uses_metrics`` marks triggers whose condition depends on provider
    metrics; they are held while metrics are unavailable.
    """

    type: str
    severity: AlertSeverity
    condition: Callable[["Clinic", "datetime"], bool]
    title: Callable[["Clinic"], str]
    message: Callable[["Clinic"], str]
    action_required: bool = False
    uses_metrics: bool = False
