#!/usr/bin/env python3
"""
Override Store — SQLite-backed asset-store backend

Implements:
- find_override(query) → value | None
- put_override(value, key=..., workspace=..., language=..., system=...)
- delete_override(...) → rows removed

A row matches a query when every dimension in the query is equal and every
dimension left out of the query is NULL. {"key": k} therefore only finds the
global override, never a workspace-scoped one.
"""

import asyncio
import json
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Dict, Any

from a3t.observability import log_backend

logger = logging.getLogger(__name__)

DIMENSIONS = ("workspace", "language", "system")

SCHEMA = """
CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL,
    workspace TEXT,
    language TEXT,
    system TEXT,
    value TEXT NOT NULL,             -- JSON encoded
    updated_at REAL DEFAULT (strftime('%s', 'now'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_{table}_scope
    ON {table}(key, IFNULL(workspace, ''), IFNULL(language, ''), IFNULL(system, ''));
"""


class SqliteDbBackend:
    """
    SQLite override store.

    One connection shared across worker threads (check_same_thread=False),
    serialized with a lock. Queries run via asyncio.to_thread so a slow disk
    only delays the resolution that asked.
    """

    name = "sqlite"

    def __init__(self, db_path: str = None, table: str = "assets"):
        if db_path is None:
            db_path = os.path.expanduser("~/.a3t/overrides.db")
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")

        self.db_path = db_path
        self.table = table
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_schema()

        logger.info(f"SqliteDbBackend initialized at {db_path} (table={table})")

    def _init_schema(self):
        with self._lock:
            self.conn.executescript(SCHEMA.format(table=self.table))
            self.conn.commit()

    @staticmethod
    def _where(query: Dict[str, Any]):
        clauses = ["key = ?"]
        params = [query["key"]]
        for dim in DIMENSIONS:
            if query.get(dim) is not None:
                clauses.append(f"{dim} = ?")
                params.append(query[dim])
            else:
                clauses.append(f"{dim} IS NULL")
        return " AND ".join(clauses), params

    def _find(self, query: Dict[str, Any]) -> Any:
        where, params = self._where(query)
        with self._lock:
            row = self.conn.execute(
                f"SELECT value FROM {self.table} WHERE {where} LIMIT 1", params
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    async def find_override(self, query: Dict[str, Any]) -> Any:
        """Return the override for ``query`` or None."""
        value = await asyncio.to_thread(self._find, query)
        log_backend(self.name, "find_override", query.get("key", ""), value is not None)
        return value

    def put_override(self, value: Any, key: str, workspace: str = None,
                     language: str = None, system: str = None) -> None:
        """Insert or replace the override for one (key, scope) combination."""
        query = {"key": key, "workspace": workspace, "language": language, "system": system}
        where, params = self._where(query)
        encoded = json.dumps(value)
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(f"DELETE FROM {self.table} WHERE {where}", params)
            cursor.execute(
                f"INSERT INTO {self.table} (key, workspace, language, system, value) "
                "VALUES (?, ?, ?, ?, ?)",
                (key, workspace, language, system, encoded),
            )
            self.conn.commit()
        logger.debug(f"Stored override {query}")

    def delete_override(self, key: str, workspace: str = None,
                        language: str = None, system: str = None) -> int:
        query = {"key": key, "workspace": workspace, "language": language, "system": system}
        where, params = self._where(query)
        with self._lock:
            cursor = self.conn.execute(f"DELETE FROM {self.table} WHERE {where}", params)
            self.conn.commit()
            return cursor.rowcount

    def close(self):
        if self.conn:
            self.conn.close()
            logger.info("SqliteDbBackend closed")
