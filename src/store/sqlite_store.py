"""
SQLite relational store for local runs.

All entity tables share one physical table keyed by (table_name,
conflict_key); each row's columns are stored as a JSON document. This keeps
the local store schema-free while honouring the same upsert-by-natural-key
semantics as the Supabase adapter.

Blocking sqlite calls run in the default executor so the event loop keeps
serving timers while a batch is being written.
"""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from src.scheduler.persistence import SQLiteAdapter

from .base import conflict_values
from .errors import StoreError


logger = logging.getLogger(__name__)


class SQLiteStore(SQLiteAdapter):
    """RelationalStore backed by a local SQLite file."""

    def __init__(self, db_path: str | Path):
        super().__init__(db_path)
        logger.info(f"SQLite store ready at {self.db_path}")

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entity_rows (
                    table_name TEXT NOT NULL,
                    conflict_key TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (table_name, conflict_key)
                )
            """)

    # =========================================================================
    # Async surface
    # =========================================================================

    async def upsert(self, table: str, record: dict, conflict_keys: Sequence[str]) -> None:
        """
        Raises:
            StoreError: Missing conflict key or sqlite failure
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._upsert_sync, table, record, list(conflict_keys))

    async def count(self, table: str, filters: Optional[dict] = None) -> int:
        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(None, self._select_sync, table, filters or {})
        return len(rows)

    async def select_one(self, table: str, filters: dict) -> Optional[dict]:
        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(None, self._select_sync, table, filters)
        return rows[0] if rows else None

    async def aclose(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None

    # =========================================================================
    # Blocking implementation
    # =========================================================================

    def _upsert_sync(self, table: str, record: dict, conflict_keys: list[str]) -> None:
        try:
            key = json.dumps(conflict_values(table, record, conflict_keys))
        except ValueError as e:
            raise StoreError(str(e), table=table) from e

        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT data FROM entity_rows WHERE table_name = ? AND conflict_key = ?",
                    (table, key),
                ).fetchone()

                merged = json.loads(row["data"]) if row else {}
                merged.update(record)

                conn.execute(
                    """
                    INSERT INTO entity_rows (table_name, conflict_key, data, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(table_name, conflict_key) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (table, key, json.dumps(merged), datetime.now(timezone.utc).isoformat()),
                )
        except (sqlite3.Error, TypeError) as e:
            raise StoreError(f"Failed to upsert into {table}: {e}", table=table) from e

    def _select_sync(self, table: str, filters: dict) -> list[dict]:
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT data FROM entity_rows WHERE table_name = ? ORDER BY rowid",
                    (table,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {table}: {e}", table=table) from e

        records = [json.loads(row["data"]) for row in rows]
        return [
            record for record in records
            if all(record.get(column) == value for column, value in filters.items())
        ]
