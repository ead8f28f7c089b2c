"""
Clinic Signal Engine — Clinic Model

Explicit record for a clinic document. Optional fields are None when the
document does not carry them; predicates test for None instead of probing
for missing keys.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .alert import Alert
from .base import DocumentModel
from .streak import Badge, Streak
from .tag import Suggestion


class ClinicStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    INACTIVE = "inactive"


class EngagementLevel(StrEnum):
    ENGAGED = "engaged"
    LOW = "low"
    NONE = "none"


PAID_PREMIUM_PACKAGES = frozenset({"premium", "enterprise"})
FREE_PACKAGE = "free"


@dataclass
class SeoMeta(DocumentModel):
    title: str | None = None
    description: str | None = None
    keywords: list[str] = field(default_factory=list)
    indexed: bool | None = None
    score: int | None = None
    components: dict[str, int] | None = None
    recommendations: list[str] = field(default_factory=list)
    last_scored: str | None = None
    last_generated: str | None = None
    last_indexed: str | None = None


@dataclass
class Traffic(DocumentModel):
    """Traffic counters on the clinic document (refreshed in memory from metrics)."""

    clicks30d: int = 0
    calls30d: int = 0
    impressions30d: int = 0
    visits30d: int = 0


@dataclass
class Engagement(DocumentModel):
    level: str = EngagementLevel.NONE
    score: int = 0
    last_checked: str | None = None


@dataclass
class Scores(DocumentModel):
    seo: int = 0
    severity: int = 100
    engagement: int = 0


@dataclass
class CallTracking(DocumentModel):
    enabled: bool = False
    number: str | None = None


@dataclass
class Validation(DocumentModel):
    status: str | None = None


@dataclass
class Clinic(DocumentModel):
    """
    Clinic record keyed by slug.

    The engine reads directory fields and writes only the engine-owned
    fields: tags, suggestions, alerts, streaks, scores, engagement, badges
    and the SEO score under seoMeta. Traffic and the rest of seoMeta belong
    to upstream writers.
    """

    slug: str = ""
    name: str = ""
    status: str | None = None
    package: str | None = None

    # Directory fields
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None  # noqa: A003
    phone: str | None = None
    website: str | None = None
    services: list[str] = field(default_factory=list)
    rating: float | None = None
    call_tracking_number: str | None = None
    call_tracking: CallTracking | None = None
    validation: Validation | None = None
    seo_meta: SeoMeta = field(default_factory=SeoMeta)
    seo_content: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    # Engine-owned fields
    traffic: Traffic = field(default_factory=Traffic)
    engagement: Engagement | None = None
    scores: Scores = field(default_factory=Scores)
    tags: list[str] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    streaks: dict[str, Streak] = field(default_factory=dict)
    badges: list[Badge] = field(default_factory=list)

    _nested = {
        "call_tracking": CallTracking,
        "validation": Validation,
        "seo_meta": SeoMeta,
        "traffic": Traffic,
        "engagement": Engagement,
        "scores": Scores,
    }
    _nested_lists = {
        "suggestions": Suggestion,
        "alerts": Alert,
        "badges": Badge,
    }

    def __post_init__(self):
        if self.seo_meta is None:
            self.seo_meta = SeoMeta()
        if self.traffic is None:
            self.traffic = Traffic()
        if self.scores is None:
            self.scores = Scores()
        for name in ("services", "tags", "suggestions", "alerts", "badges"):
            if getattr(self, name) is None:
                setattr(self, name, [])
        # Streaks are stored as a map keyed by streak type; legacy lists are dropped
        raw_streaks = self.streaks if isinstance(self.streaks, dict) else {}
        self.streaks = {
            key: value if isinstance(value, Streak) else Streak.from_doc(value)
            for key, value in raw_streaks.items()
            if isinstance(value, Streak | dict)
        }

    @classmethod
    def from_store(cls, slug: str, data: dict[str, Any]) -> "Clinic":
        """Build from a stored document; the document id is the slug."""
        clinic = cls.from_doc(data)
        clinic.slug = slug
        return clinic

    def to_doc(self) -> dict[str, Any]:
        doc = super().to_doc()
        doc["streaks"] = {key: streak.to_doc() for key, streak in self.streaks.items()}
        return doc

    # =========================================================================
    # Convenience predicates
    # =========================================================================

    @property
    def is_active(self) -> bool:
        return self.status == ClinicStatus.ACTIVE

    @property
    def is_free(self) -> bool:
        return self.package == FREE_PACKAGE

    @property
    def is_premium(self) -> bool:
        return self.package in PAID_PREMIUM_PACKAGES

    @property
    def engagement_level(self) -> str | None:
        return self.engagement.level if self.engagement else None

    def active_alert(self, alert_type: str) -> Alert | None:
        """The unresolved alert of this type, if any."""
        for alert in self.alerts:
            if alert.type == alert_type and alert.is_active:
                return alert
        return None
