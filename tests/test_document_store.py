"""
Tests for the SQLite document store and its atomic primitives.
"""

import sqlite3
import threading

import pytest

from clinicops.errors import DocumentNotFoundError
from clinicops.store import delete_path, get_path, set_path
from clinicops.store import documents
from clinicops.store.documents import split_path


class TestPaths:
    def test_get_set_delete(self):
        data = {}
        set_path(data, "seoMeta.indexed", True)
        assert data == {"seoMeta": {"indexed": True}}
        assert get_path(data, "seoMeta.indexed") is True
        assert get_path(data, "seoMeta.missing", "x") == "x"
        assert delete_path(data, "seoMeta.indexed")
        assert not delete_path(data, "seoMeta.indexed")
        assert data == {"seoMeta": {}}

    def test_set_replaces_scalar_parent(self):
        data = {"streaks": 5}
        set_path(data, "streaks.seo_indexed.count", 1)
        assert data == {"streaks": {"seo_indexed": {"count": 1}}}

    @pytest.mark.parametrize("path", ["", ".a", "a..b", "a."])
    def test_invalid_paths(self, path):
        with pytest.raises(ValueError):
            split_path(path)


class TestReadsAndWrites:
    def test_schema_created(self, store):
        assert store.db.table_exists("documents")

    def test_module_imports_with_builtin_named_methods(self):
        # list and set are method names on DocumentStore; later annotations still mean the builtins
        hints = documents.DocumentStore.atomic_array_union.__annotations__
        assert hints["values"] == "list[Any]"
        assert hints["return"] == "list[Any]"

    def test_set_get(self, store):
        store.set("clinics", "a", {"name": "A"})
        assert store.get("clinics", "a") == {"name": "A"}
        assert store.exists("clinics", "a")
        assert store.get("clinics", "missing") is None

    def test_update_paths(self, store):
        store.set("clinics", "a", {"name": "A", "scores": {"seo": 10}})
        store.update("clinics", "a", {"scores.seo": 70, "tags": ["no-index"]})
        assert store.get("clinics", "a") == {
            "name": "A",
            "scores": {"seo": 70},
            "tags": ["no-index"],
        }

    def test_update_missing_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update("clinics", "ghost", {"tags": []})

    def test_list_filters(self, store):
        store.set("clinics", "b", {"status": "active", "package": "free"})
        store.set("clinics", "a", {"status": "active", "package": "premium"})
        store.set("clinics", "c", {"status": "paused"})
        store.set("metrics", "a", {"status": "active"})

        assert [i for i, _ in store.list("clinics")] == ["a", "b", "c"]
        assert [i for i, _ in store.list("clinics", {"status": "active"})] == ["a", "b"]
        assert [i for i, _ in store.list("clinics", {"status": ["paused", "active"]})] == [
            "a",
            "b",
            "c",
        ]
        assert store.list("clinics", {"status": []}) == []
        assert store.list("clinics", {"status": "active", "package": "free"}) == [
            ("b", {"status": "active", "package": "free"})
        ]

    def test_list_nested_filter(self, store):
        store.set("clinics", "a", {"seoMeta": {"indexed": True}})
        store.set("clinics", "b", {"seoMeta": {"indexed": False}})
        assert [i for i, _ in store.list("clinics", {"seoMeta.indexed": True})] == ["a"]

    def test_batch_write_is_all_or_nothing(self, store):
        store.set("clinics", "a", {"tags": []})
        with pytest.raises(DocumentNotFoundError):
            store.batch_write("clinics", [("a", {"tags": ["x"]}), ("missing", {"tags": ["y"]})])
        assert store.get("clinics", "a") == {"tags": []}

    def test_batch_write(self, store):
        store.set("clinics", "a", {})
        store.set("clinics", "b", {})
        assert store.batch_write("clinics", [("a", {"n": 1}), ("b", {"n": 2})]) == 2
        assert store.get("clinics", "b") == {"n": 2}

    def test_add_and_delete(self, store):
        store.add("passes", "run-1", {"processed": 3})
        with pytest.raises(sqlite3.IntegrityError):
            store.add("passes", "run-1", {"processed": 4})
        assert store.delete("passes", "run-1")
        assert not store.delete("passes", "run-1")


class TestMerge:
    def test_creates_when_absent(self, store):
        store.merge("admin", "alerts", set_fields={"active.x": {"id": "x"}})
        assert store.get("admin", "alerts") == {"active": {"x": {"id": "x"}}}

    def test_merges_keys(self, store):
        store.merge("admin", "alerts", set_fields={"active.x": 1, "lastUpdated": "t1"})
        store.merge("admin", "alerts", set_fields={"active.y": 2, "lastUpdated": "t2"})
        store.merge("admin", "alerts", set_fields={"resolved.x": 3}, delete_fields=["active.x"])
        assert store.get("admin", "alerts") == {
            "active": {"y": 2},
            "resolved": {"x": 3},
            "lastUpdated": "t2",
        }


class TestAtomicPrimitives:
    def test_increment(self, store):
        store.set("clinics", "a", {})
        assert store.atomic_increment("clinics", "a", "streaks.s.count") == 1
        assert store.atomic_increment("clinics", "a", "streaks.s.count", 5) == 6
        assert store.get("clinics", "a") == {"streaks": {"s": {"count": 6}}}

    def test_increment_cap(self, store):
        store.set("clinics", "a", {"count": 364})
        assert store.atomic_increment("clinics", "a", "count", 1, cap=365) == 365
        assert store.atomic_increment("clinics", "a", "count", 1, cap=365) == 365

    def test_increment_missing_doc(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.atomic_increment("clinics", "ghost", "count")

    def test_max(self, store):
        store.set("clinics", "a", {"best": 5})
        assert store.atomic_max("clinics", "a", "best", 3) == 5
        assert store.atomic_max("clinics", "a", "best", 8) == 8

    def test_array_union_unique_by(self, store):
        store.set("clinics", "a", {"badges": [{"streakType": "s", "streakCount": 3, "name": "X"}]})
        added = store.atomic_array_union(
            "clinics",
            "a",
            "badges",
            [
                {"streakType": "s", "streakCount": 3, "name": "renamed"},
                {"streakType": "s", "streakCount": 7, "name": "Y"},
            ],
            unique_by=("streakType", "streakCount"),
        )
        assert added == [{"streakType": "s", "streakCount": 7, "name": "Y"}]
        assert len(store.get("clinics", "a")["badges"]) == 2

    def test_array_union_whole_value(self, store):
        store.set("clinics", "a", {})
        assert store.atomic_array_union("clinics", "a", "tags", ["x", "y", "x"]) == ["x", "y"]
        assert store.atomic_array_union("clinics", "a", "tags", ["x"]) == []

    def test_concurrent_increments(self, store):
        store.set("clinics", "a", {"count": 0})

        def bump():
            for _ in range(25):
                store.atomic_increment("clinics", "a", "count")

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("clinics", "a")["count"] == 100


class TestTransactions:
    def test_nested_rollback(self, store):
        store.set("clinics", "a", {"tags": []})
        with pytest.raises(RuntimeError):
            with store.db.transaction():
                store.update("clinics", "a", {"tags": ["x"]})
                store.merge("admin", "alerts", set_fields={"active.x": 1})
                raise RuntimeError("index write failed")

        assert store.get("clinics", "a") == {"tags": []}
        assert store.get("admin", "alerts") is None
