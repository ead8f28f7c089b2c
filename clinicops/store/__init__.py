"""Persistence adapter: SQLite-backed JSON document store."""

from .database import Database
from .documents import DocumentStore, delete_path, get_path, set_path

__all__ = [
    "Database",
    "DocumentStore",
    "get_path",
    "set_path",
    "delete_path",
]
