"""
Clinic Signal Engine — Base Models

Record-ID timestamps, datetime helpers and camelCase document mapping shared by
all record types.
"""

from dataclasses import fields
from datetime import UTC, datetime
from typing import Any

# =============================================================================
# RECORD IDS
# =============================================================================


def epoch_ms(dt: datetime) -> int:
    """Milliseconds since epoch, used as the timestamp part of record IDs."""
    return int(dt.timestamp() * 1000)


# =============================================================================
# DATETIME HELPERS
# =============================================================================


def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime | None) -> str | None:
    """Serialize a datetime as ISO-8601 UTC with a Z suffix."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def now_iso() -> str:
    """Get current datetime as ISO string."""
    return to_iso(now_utc())


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse an ISO datetime string (or pass through a datetime).

    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def days_since(value: Any, now: datetime) -> float | None:
    """Days elapsed between a stored timestamp and now. None if unknown."""
    dt = parse_datetime(value)
    if dt is None:
        return None
    return (now - dt).total_seconds() / 86400


# =============================================================================
# DOCUMENT MAPPING
# =============================================================================

def to_camel(name: str) -> str:
    """snake_case → camelCase (clicks_last_30 → clicksLast30)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class DocumentModel:
    """
    Mixin for dataclasses stored as camelCase JSON documents.

    Subclasses may list nested record fields in ``_nested`` as
    ``{field_name: record_class}`` and list-of-record fields in
    ``_nested_lists``.
    """

    _nested: dict[str, type] = {}
    _nested_lists: dict[str, type] = {}

    def to_doc(self) -> dict[str, Any]:
        """Convert to a camelCase document."""
        doc: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, DocumentModel):
                value = value.to_doc()
            elif isinstance(value, list):
                value = [v.to_doc() if isinstance(v, DocumentModel) else v for v in value]
            doc[to_camel(f.name)] = value
        return doc

    @classmethod
    def from_doc(cls, data: dict[str, Any] | None):
        """Create from a camelCase document, ignoring unknown keys."""
        data = data or {}
        names = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        by_key = {to_camel(n): n for n in names} | {n: n for n in names}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = by_key.get(key)
            if name is None:
                continue
            if name in cls._nested and isinstance(value, dict):
                value = cls._nested[name].from_doc(value)
            elif name in cls._nested_lists and isinstance(value, list):
                value = [
                    cls._nested_lists[name].from_doc(v) if isinstance(v, dict) else v
                    for v in value
                ]
            kwargs[name] = value
        return cls(**kwargs)
