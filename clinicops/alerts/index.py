"""
Clinic Signal Engine — Global Alert Index

Denormalized view of alerts across clinics, stored in admin/alerts:

    {
        "active":   {"<alert_id>": {...alert...}},
        "resolved": {"<alert_id>": {"resolvedAt": ..., "clinicSlug": ...}},
        "lastUpdated": ...
    }

The clinic's own alert list is the source of truth. The index is only ever
touched through keyed merges, so concurrent writers for different alerts
never overwrite each other.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from clinicops import config
from clinicops.models import SEVERITY_RANK, Alert, Clinic, now_utc, to_iso
from clinicops.store import DocumentStore

logger = logging.getLogger(__name__)


def index_changes(
    created: Iterable[Alert],
    resolved: Iterable[Alert],
    now: datetime,
) -> tuple[dict, list[str]]:
    """Field paths to set and delete on the index document."""
    set_fields: dict = {}
    delete_fields: list[str] = []
    for alert in created:
        set_fields[f"active.{alert.id}"] = alert.to_doc()
    for alert in resolved:
        delete_fields.append(f"active.{alert.id}")
        set_fields[f"resolved.{alert.id}"] = {
            "resolvedAt": alert.resolved_at,
            "clinicSlug": alert.clinic_slug,
        }
    set_fields["lastUpdated"] = to_iso(now)
    return set_fields, delete_fields


class AlertIndex:
    """Reads and keyed writes against the global alert index."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def apply(self, created: list[Alert], resolved: list[Alert], now: datetime) -> None:
        """Mirror transitions into the index (create-if-absent-else-merge)."""
        if not created and not resolved:
            return
        set_fields, delete_fields = index_changes(created, resolved, now)
        self.store.merge(
            config.ADMIN_COLLECTION,
            config.ALERT_INDEX_DOC,
            set_fields=set_fields,
            delete_fields=delete_fields,
        )

    def get_active_alerts(self, limit: int = 50) -> list[Alert]:
        """
        Active alerts across all clinics.

        Sorted by severity (critical first), then newest first.
        """
        doc = self.store.get(config.ADMIN_COLLECTION, config.ALERT_INDEX_DOC) or {}
        alerts = [Alert.from_doc(data) for data in (doc.get("active") or {}).values()]
        alerts.sort(key=lambda a: a.created_at or "", reverse=True)
        alerts.sort(key=lambda a: SEVERITY_RANK.get(a.severity, 0), reverse=True)
        return alerts[:limit]

    def resolve_alert_by_id(self, alert_id: str, now: datetime | None = None) -> Alert | None:
        """
        Manually resolve an active alert.

        Marks the alert resolved on the owning clinic and moves it from
        active to resolved in the index, in one transaction.

        Returns:
            The resolved alert, or None if no active alert has that ID
        """
        now = now or now_utc()
        doc = self.store.get(config.ADMIN_COLLECTION, config.ALERT_INDEX_DOC) or {}
        indexed = (doc.get("active") or {}).get(alert_id)
        if indexed is None:
            logger.info(f"No active alert {alert_id} in index")
            return None

        resolved = replace(Alert.from_doc(indexed), resolved_at=to_iso(now))

        with self.store.db.transaction():
            data = self.store.get(config.CLINICS_COLLECTION, resolved.clinic_slug)
            if data is not None:
                clinic = Clinic.from_store(resolved.clinic_slug, data)
                alerts = [resolved if a.id == alert_id else a for a in clinic.alerts]
                self.store.update(
                    config.CLINICS_COLLECTION,
                    clinic.slug,
                    {"alerts": [a.to_doc() for a in alerts]},
                )
            else:
                logger.warning(f"Clinic {resolved.clinic_slug} missing while resolving {alert_id}")
            self.apply([], [resolved], now)

        logger.info(f"Resolved alert {alert_id} for {resolved.clinic_slug}")
        return resolved
