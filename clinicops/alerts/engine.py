"""
Clinic Signal Engine — Alert Lifecycle Manager

Per (clinic, trigger type) state machine:

    NONE --condition true--> ACTIVE --condition false--> RESOLVED

A resolved alert is kept forever; a later true condition creates a new
instance. Planning is pure, so dry runs and live runs see the same
transitions.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from clinicops.models import Alert, AlertTrigger, Clinic, epoch_ms, to_iso

from .triggers import ALERT_TRIGGERS

logger = logging.getLogger(__name__)

CREATE = "create"
RESOLVE = "resolve"


def make_alert_id(alert_type: str, slug: str, now: datetime) -> str:
    """Alert ID; dots are stripped so the ID is safe as an index path key."""
    return f"{alert_type}_{slug.replace('.', '-')}_{epoch_ms(now)}"


@dataclass
class AlertTransition:
    action: str  # create | resolve
    alert: Alert

    def to_dict(self) -> dict:
        return {"action": self.action, "type": self.alert.type, "alertId": self.alert.id}


@dataclass
class AlertPlan:
    """Transitions for one clinic plus its resulting alert list."""

    slug: str
    alerts: list[Alert] = field(default_factory=list)
    transitions: list[AlertTransition] = field(default_factory=list)
    trigger_errors: list[str] = field(default_factory=list)

    @property
    def created(self) -> list[Alert]:
        return [t.alert for t in self.transitions if t.action == CREATE]

    @property
    def resolved(self) -> list[Alert]:
        return [t.alert for t in self.transitions if t.action == RESOLVE]


class AlertLifecycleManager:
    """Maps trigger outcomes onto persistent alert records."""

    def __init__(self, triggers: tuple[AlertTrigger, ...] | list[AlertTrigger] = ALERT_TRIGGERS):
        self.triggers = tuple(triggers)

    def plan(self, clinic: Clinic, now: datetime, metrics_available: bool = True) -> AlertPlan:
        """
        Decide alert transitions for one clinic.

        Args:
            clinic: Clinic as evaluated in this pass (fresh traffic, scores,
                engagement)
            now: Pass clock
            metrics_available: False when the pass fell back to zero metrics;
                triggers marked ``uses_metrics`` then neither create nor resolve

        Returns:
            AlertPlan; ``alerts`` is the full list to persist on the clinic
        """
        alerts = list(clinic.alerts)
        plan = AlertPlan(slug=clinic.slug)

        for trigger in self.triggers:
            if trigger.uses_metrics and not metrics_available:
                continue
            try:
                holds = bool(trigger.condition(clinic, now))
                existing = next(
                    (a for a in alerts if a.type == trigger.type and a.is_active),
                    None,
                )

                if holds and existing is None:
                    alert = self._build_alert(trigger, clinic, now)
                    alerts.append(alert)
                    plan.transitions.append(AlertTransition(CREATE, alert))
                elif not holds and existing is not None:
                    resolved = replace(existing, resolved_at=to_iso(now))
                    alerts[alerts.index(existing)] = resolved
                    plan.transitions.append(AlertTransition(RESOLVE, resolved))
            except Exception as e:
                msg = f"trigger {trigger.type} failed for {clinic.slug}: {e}"
                logger.warning(f"Skipping {msg}")
                plan.trigger_errors.append(msg)

        plan.alerts = alerts
        return plan

    @staticmethod
    def _build_alert(trigger: AlertTrigger, clinic: Clinic, now: datetime) -> Alert:
        return Alert(
            id=make_alert_id(trigger.type, clinic.slug, now),
            type=trigger.type,
            severity=trigger.severity,
            title=trigger.title(clinic),
            message=trigger.message(clinic),
            clinic_slug=clinic.slug,
            data={
                "package": clinic.package,
                "clicks30d": clinic.traffic.clicks30d,
                "calls30d": clinic.traffic.calls30d,
                "engagement": clinic.engagement_level,
                "seoScore": clinic.scores.seo,
            },
            created_at=to_iso(now),
            resolved_at=None,
            action_required=trigger.action_required,
        )
