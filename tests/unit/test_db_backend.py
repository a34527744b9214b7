#!/usr/bin/env python3
"""
Unit tests for the SQLite override store
"""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from a3t.backends.db_backend import SqliteDbBackend
from a3t.cache.cache import ForeverCache
from a3t.context import ContextStore
from a3t.resolver import Resolver


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db(tmp_path):
    backend = SqliteDbBackend(str(tmp_path / "overrides.db"))
    yield backend
    backend.close()


class TestSqliteDbBackend:

    def test_global_override(self, db):
        db.put_override("Hi", key="greeting")
        assert run(db.find_override({"key": "greeting"})) == "Hi"

    def test_scoped_override_needs_exact_scope(self, db):
        """Test: {"key": k} only finds the global row, never a scoped one."""
        db.put_override("Hola", key="greeting", language="es")

        assert run(db.find_override({"key": "greeting"})) is None
        assert run(db.find_override({"key": "greeting", "language": "es"})) == "Hola"
        assert run(db.find_override({"key": "greeting", "language": "es", "workspace": "ws1"})) is None

    def test_json_values(self, db):
        db.put_override({"title": "Docs", "items": [1, 2]}, key="menu", workspace="ws1")
        assert run(db.find_override({"key": "menu", "workspace": "ws1"})) == {"title": "Docs", "items": [1, 2]}

    def test_put_replaces(self, db):
        db.put_override("v1", key="k", system="sys1")
        db.put_override("v2", key="k", system="sys1")
        assert run(db.find_override({"key": "k", "system": "sys1"})) == "v2"

    def test_delete(self, db):
        db.put_override("v", key="k", workspace="ws1", language="en")
        assert db.delete_override("k", workspace="ws1", language="en") == 1
        assert run(db.find_override({"key": "k", "workspace": "ws1", "language": "en"})) is None

    def test_persistent_across_connections(self, tmp_path):
        path = str(tmp_path / "persist.db")
        first = SqliteDbBackend(path)
        first.put_override("kept", key="k")
        first.close()

        second = SqliteDbBackend(path)
        assert run(second.find_override({"key": "k"})) == "kept"
        second.close()

    def test_invalid_table_name(self, tmp_path):
        with pytest.raises(ValueError):
            SqliteDbBackend(str(tmp_path / "x.db"), table="assets; DROP TABLE x")

    def test_in_memory(self):
        backend = SqliteDbBackend(":memory:")
        backend.put_override(42, key="answer")
        assert run(backend.find_override({"key": "answer"})) == 42
        backend.close()


class TestHierarchyAgainstSqlite:
    """Test: resolver walks the override tiers against a real store."""

    def test_workspace_beats_language_beats_global(self, db):
        db.put_override("global", key="title")
        db.put_override("lang", key="title", language="en")
        db.put_override("ws", key="title", workspace="ws1")

        store = ContextStore({"workspace": "ws1", "language": "en"})
        resolver = Resolver(store, ForeverCache(), db_backend=db)

        assert run(resolver.resolve("title")) == "ws"
        assert run(resolver.resolve("title", context_override={"workspace": "ws2"})) == "lang"
        assert run(resolver.resolve("title", context_override={"workspace": "ws2", "language": "de"})) == "global"

    def test_workspace_language_pair(self, db):
        db.put_override("pair", key="title", workspace="ws1", language="en")
        db.put_override("ws", key="title", workspace="ws1")

        store = ContextStore({"workspace": "ws1", "language": "en"})
        resolver = Resolver(store, ForeverCache(), db_backend=db)
        assert run(resolver.resolve("title")) == "pair"

    def test_system_tier(self, db):
        db.put_override("sys", key="title", system="sys1")
        store = ContextStore({"system": "sys1", "language": "en"})
        resolver = Resolver(store, ForeverCache(), db_backend=db)
        assert run(resolver.resolve("title")) == "sys"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
