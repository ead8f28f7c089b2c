"""
Clinic Signal Engine — Document Store

JSON documents keyed by (collection, id) on top of SQLite. Field paths use
dots ("seoMeta.indexed", "active.<alert_id>"). Every mutating call is one
IMMEDIATE transaction, so increments, array unions and keyed merges are
atomic with respect to concurrent writers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from clinicops.errors import DocumentNotFoundError

from .database import Database

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (collection, id)
)
"""

# =============================================================================
# PATH HELPERS
# =============================================================================


def split_path(path: str) -> list[str]:
    """Split a dotted field path into its keys."""
    parts = path.split(".")
    if not path or any(not p for p in parts):
        raise ValueError(f"Invalid field path: {path!r}")
    return parts


def get_path(data: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path from a nested dict."""
    node: Any = data
    for key in split_path(path):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path into a nested dict, creating parents as needed."""
    keys = split_path(path)
    node = data
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def delete_path(data: dict[str, Any], path: str) -> bool:
    """Remove a dotted path. Returns True if something was removed."""
    keys = split_path(path)
    node: Any = data
    for key in keys[:-1]:
        if not isinstance(node, dict) or key not in node:
            return False
        node = node[key]
    if isinstance(node, dict) and keys[-1] in node:
        del node[keys[-1]]
        return True
    return False


# =============================================================================
# DOCUMENT STORE
# =============================================================================


class DocumentStore:
    """
    Document store adapter used by the engine.

    Offers get/list/update/batch-write plus the atomic primitives the engine
    needs under concurrent passes: increment, max, array-union and keyed
    create-if-absent-else-merge.
    """

    def __init__(self, db: Database):
        self.db = db
        self.ensure_schema()

    def ensure_schema(self) -> None:
        with self.db.transaction() as conn:
            conn.execute(SCHEMA)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document body, or None if missing."""
        row = self.db.fetch_one(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        if row is None:
            return None
        return json.loads(row["data"])

    def exists(self, collection: str, doc_id: str) -> bool:
        row = self.db.fetch_one(
            "SELECT 1 AS hit FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        return row is not None

    def list(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """
        List documents in a collection, ordered by id.

        Args:
            collection: Collection name
            filters: Mapping of field path to required value. A list/tuple
                value means "field IN values".

        Returns:
            List of (doc_id, data) tuples
        """
        sql = "SELECT id, data FROM documents WHERE collection = ?"
        params: list[Any] = [collection]

        for path, expected in (filters or {}).items():
            json_path = "$." + ".".join(split_path(path))
            if isinstance(expected, (list, tuple, set)):
                values = list(expected)
                if not values:
                    return []
                placeholders = ", ".join("?" for _ in values)
                sql += f" AND json_extract(data, ?) IN ({placeholders})"
                params.append(json_path)
                params.extend(values)
            else:
                sql += " AND json_extract(data, ?) = ?"
                params.extend([json_path, expected])

        sql += " ORDER BY id"
        rows = self.db.fetch_all(sql, tuple(params))
        return [(row["id"], json.loads(row["data"])) for row in rows]

    # =========================================================================
    # Writes
    # =========================================================================

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or fully replace a document."""
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                """,
                (collection, doc_id, json.dumps(data, default=str)),
            )

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Overwrite the given field paths on an existing document.

        Raises:
            DocumentNotFoundError: if the document does not exist
        """
        with self.db.transaction():
            data = self._load_for_write(collection, doc_id)
            if data is None:
                raise DocumentNotFoundError(collection, doc_id)
            for path, value in fields.items():
                set_path(data, path, value)
            self._save(collection, doc_id, data)

    def batch_write(self, collection: str, writes: Iterable[tuple[str, dict[str, Any]]]) -> int:
        """
        Apply several partial updates in one transaction.

        All-or-nothing: a missing document rolls back the whole batch.

        Returns:
            Number of documents written
        """
        count = 0
        with self.db.transaction():
            for doc_id, fields in writes:
                self.update(collection, doc_id, fields)
                count += 1
        return count

    def merge(
        self,
        collection: str,
        doc_id: str,
        set_fields: dict[str, Any] | None = None,
        delete_fields: Iterable[str] | None = None,
    ) -> None:
        """
        Create the document if absent, else merge keyed fields into it.

        Only the named paths are touched; concurrent merges of different keys
        into the same document never clobber each other.
        """
        with self.db.transaction():
            data = self._load_for_write(collection, doc_id)
            if data is None:
                data = {}
            for path, value in (set_fields or {}).items():
                set_path(data, path, value)
            for path in delete_fields or ():
                delete_path(data, path)
            self._save(collection, doc_id, data)

    def add(self, collection: str, doc_id: str, data: dict[str, Any]) -> str:
        """Insert a new document; fails if the id is taken."""
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, json.dumps(data, default=str)),
            )
        return doc_id

    def delete(self, collection: str, doc_id: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            return cursor.rowcount > 0

    # =========================================================================
    # Atomic primitives
    # =========================================================================

    def atomic_increment(
        self,
        collection: str,
        doc_id: str,
        path: str,
        delta: int = 1,
        cap: int | None = None,
    ) -> int:
        """
        Add delta to a numeric field (missing counts as 0), optionally capped.

        Returns:
            The new value
        """
        with self.db.transaction():
            data = self._load_for_write(collection, doc_id)
            if data is None:
                raise DocumentNotFoundError(collection, doc_id)
            current = get_path(data, path) or 0
            value = current + delta
            if cap is not None:
                value = min(value, cap)
            set_path(data, path, value)
            self._save(collection, doc_id, data)
            return value

    def atomic_max(self, collection: str, doc_id: str, path: str, value: int) -> int:
        """Raise a numeric field to at least value. Returns the stored value."""
        with self.db.transaction():
            data = self._load_for_write(collection, doc_id)
            if data is None:
                raise DocumentNotFoundError(collection, doc_id)
            stored = max(get_path(data, path) or 0, value)
            set_path(data, path, stored)
            self._save(collection, doc_id, data)
            return stored

    def atomic_array_union(
        self,
        collection: str,
        doc_id: str,
        path: str,
        values: list[Any],
        unique_by: tuple[str, ...] | None = None,
    ) -> list[Any]:
        """
        Append values to an array field, skipping ones already present.

        Args:
            unique_by: For dict elements, compare only these keys instead of
                whole-value equality.

        Returns:
            The values that were actually appended
        """

        def identity(item: Any) -> Any:
            if unique_by and isinstance(item, dict):
                return tuple(item.get(k) for k in unique_by)
            return json.dumps(item, sort_keys=True, default=str)

        with self.db.transaction():
            data = self._load_for_write(collection, doc_id)
            if data is None:
                raise DocumentNotFoundError(collection, doc_id)
            current = get_path(data, path)
            if not isinstance(current, list):
                current = []
            seen = {identity(item) for item in current}
            added = []
            for value in values:
                key = identity(value)
                if key in seen:
                    continue
                seen.add(key)
                current.append(value)
                added.append(value)
            if added:
                set_path(data, path, current)
                self._save(collection, doc_id, data)
            return added

    # =========================================================================
    # Internals
    # =========================================================================

    def _load_for_write(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        # Callers hold the transaction, so this read is part of it
        return self.get(collection, doc_id)

    def _save(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.db.execute(
            """
            INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)
            ON CONFLICT(collection, id) DO UPDATE SET
                data = excluded.data,
                updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
            """,
            (collection, doc_id, json.dumps(data, default=str)),
        )
