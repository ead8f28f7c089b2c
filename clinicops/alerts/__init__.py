"""Alert triggers, lifecycle planning and the global alert index."""

from .engine import AlertLifecycleManager, AlertPlan, AlertTransition, make_alert_id
from .index import AlertIndex, index_changes
from .triggers import ALERT_TRIGGERS, is_paid

__all__ = [
    "ALERT_TRIGGERS",
    "is_paid",
    "AlertLifecycleManager",
    "AlertPlan",
    "AlertTransition",
    "make_alert_id",
    "AlertIndex",
    "index_changes",
]
