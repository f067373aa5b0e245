"""
Persistence for the Job Scheduler.

Two stores live here:
- ConfigStore: namespace -> JSON blob, holds the mutable fields of every
  JobDefinition under one namespace
- ExecutionLog: append-only ExecutionRecord log with the summary queries
  used by the dashboard (daily summary, per-entity stats, retention cleanup)

SQLite implementations use WAL mode and a connection per operation.
In-memory implementations back the tests and ephemeral runs.

Writes raise PersistenceError; the scheduler treats that as a warning.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from .entities import ExecutionRecord, from_iso, to_iso
from .errors import PersistenceError


# Default retention for execution records (days)
DEFAULT_RETENTION_DAYS = 30


class ConfigStore(Protocol):
    """Durable JSON blobs keyed by namespace."""

    def load(self, namespace: str) -> Optional[Any]:
        ...

    def save(self, namespace: str, data: Any) -> None:
        ...


class ExecutionLog(Protocol):
    """Append-only sink for ExecutionRecords."""

    def append(self, record: ExecutionRecord, entity: str) -> None:
        ...


# =============================================================================
# SQLite
# =============================================================================


class SQLiteAdapter:
    """Connection handling shared by the SQLite stores."""

    def __init__(self, db_path: str | Path):
        """
        Args:
            db_path: Path to SQLite database file. Use ":memory:" for testing.
        """
        self.db_path = str(db_path)
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        if self.db_path == ":memory:":
            # A fresh ":memory:" connection is a fresh database; keep one
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(
                    self.db_path, check_same_thread=False
                )
                self._memory_conn.row_factory = sqlite3.Row
            return self._memory_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._memory_conn:
            conn.close()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        with self._lock:
            conn = self._get_connection()
            try:
                yield conn
            finally:
                self._release(conn)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        with self._lock:
            conn = self._get_connection()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                self._release(conn)

    def _init_db(self) -> None:
        raise NotImplementedError


class SQLiteConfigStore(SQLiteAdapter):
    """SQLite-backed ConfigStore."""

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS config_blobs (
                    namespace TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def load(self, namespace: str) -> Optional[Any]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT data FROM config_blobs WHERE namespace = ?",
                (namespace,),
            ).fetchone()

        if row is None:
            return None
        return json.loads(row["data"])

    def save(self, namespace: str, data: Any) -> None:
        try:
            payload = json.dumps(data)
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO config_blobs (namespace, data, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(namespace) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (namespace, payload, to_iso(datetime.now(timezone.utc))),
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save config '{namespace}': {e}") from e


class SQLiteExecutionLog(SQLiteAdapter):
    """SQLite-backed ExecutionLog with summary queries."""

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS execution_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id TEXT NOT NULL,
                    entity TEXT NOT NULL,
                    sync_date TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    duration_ms INTEGER NOT NULL DEFAULT 0,
                    success INTEGER NOT NULL,
                    records_processed INTEGER NOT NULL DEFAULT 0,
                    error_count INTEGER NOT NULL DEFAULT 0,
                    errors TEXT NOT NULL DEFAULT '[]',
                    api_calls_used INTEGER NOT NULL DEFAULT 0,
                    attempt INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_records_entity_date
                ON execution_records (entity, sync_date)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_records_date
                ON execution_records (sync_date)
            """)

    def append(self, record: ExecutionRecord, entity: str) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO execution_records (
                        job_id, entity, sync_date, start_time, end_time,
                        duration_ms, success, records_processed, error_count,
                        errors, api_calls_used, attempt
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.job_id,
                        entity,
                        record.start_time.date().isoformat(),
                        to_iso(record.start_time),
                        to_iso(record.end_time),
                        int(record.duration * 1000),
                        1 if record.success else 0,
                        record.records_processed,
                        record.error_count,
                        json.dumps(list(record.errors)),
                        record.api_calls_used,
                        record.attempt,
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to append execution record for {record.job_id}: {e}"
            ) from e

    def _row_to_record(self, row: sqlite3.Row) -> ExecutionRecord:
        return ExecutionRecord(
            job_id=row["job_id"],
            start_time=from_iso(row["start_time"]),
            end_time=from_iso(row["end_time"]),
            success=bool(row["success"]),
            records_processed=row["records_processed"],
            error_count=row["error_count"],
            errors=tuple(json.loads(row["errors"])),
            api_calls_used=row["api_calls_used"],
            attempt=row["attempt"],
        )

    def list_records(
        self,
        job_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        """List recent records, newest first."""
        query = "SELECT * FROM execution_records"
        params: list = []
        if job_id is not None:
            query += " WHERE job_id = ?"
            params.append(job_id)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def daily_summary(self, day: date) -> dict:
        """
        Summarize one calendar day of sync activity.

        Returns:
            Dict with total_records_added, total_api_calls, tables_synced,
            sync_sessions, success_rate (percent)
        """
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT entity, success, records_processed, api_calls_used "
                "FROM execution_records WHERE sync_date = ?",
                (day.isoformat(),),
            ).fetchall()
        return _summarize(day, [dict(row) for row in rows])

    def table_stats(self, entity: str, days: int = 7, today: Optional[date] = None) -> dict:
        """Aggregate stats for one entity over the last ``days`` days."""
        today = today or datetime.now(timezone.utc).date()
        start = today - timedelta(days=days)

        with self._connection() as conn:
            rows = conn.execute(
                "SELECT success, records_processed, api_calls_used, duration_ms, start_time "
                "FROM execution_records "
                "WHERE entity = ? AND sync_date >= ? AND sync_date <= ? "
                "ORDER BY id DESC",
                (entity, start.isoformat(), today.isoformat()),
            ).fetchall()
        return _entity_stats([dict(row) for row in rows])

    def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS, today: Optional[date] = None) -> int:
        """
        Delete records older than the retention window.

        Returns:
            Number of records deleted
        """
        today = today or datetime.now(timezone.utc).date()
        cutoff = today - timedelta(days=retention_days)
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM execution_records WHERE sync_date < ?",
                    (cutoff.isoformat(),),
                )
                return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clean up execution records: {e}") from e


# =============================================================================
# In-memory
# =============================================================================


class InMemoryConfigStore:
    """ConfigStore kept in a dict. Values round-trip through JSON."""

    def __init__(self):
        self._blobs: dict[str, str] = {}

    def load(self, namespace: str) -> Optional[Any]:
        payload = self._blobs.get(namespace)
        return json.loads(payload) if payload is not None else None

    def save(self, namespace: str, data: Any) -> None:
        try:
            self._blobs[namespace] = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save config '{namespace}': {e}") from e


class InMemoryExecutionLog:
    """ExecutionLog kept in a list."""

    def __init__(self):
        self.entries: list[tuple[ExecutionRecord, str]] = []

    def append(self, record: ExecutionRecord, entity: str) -> None:
        self.entries.append((record, entity))

    @property
    def records(self) -> list[ExecutionRecord]:
        return [record for record, _ in self.entries]

    def records_for(self, job_id: str) -> list[ExecutionRecord]:
        return [record for record in self.records if record.job_id == job_id]

    def daily_summary(self, day: date) -> dict:
        rows = [
            {
                "entity": entity,
                "success": record.success,
                "records_processed": record.records_processed,
                "api_calls_used": record.api_calls_used,
            }
            for record, entity in self.entries
            if record.start_time.date() == day
        ]
        return _summarize(day, rows)


# =============================================================================
# Aggregation helpers
# =============================================================================


def _summarize(day: date, rows: list[dict]) -> dict:
    if not rows:
        return {
            "date": day.isoformat(),
            "total_records_added": 0,
            "total_api_calls": 0,
            "tables_synced": 0,
            "sync_sessions": 0,
            "success_rate": 0.0,
        }

    succeeded = sum(1 for row in rows if row["success"])
    return {
        "date": day.isoformat(),
        "total_records_added": sum(row["records_processed"] or 0 for row in rows),
        "total_api_calls": sum(row["api_calls_used"] or 0 for row in rows),
        "tables_synced": len({row["entity"] for row in rows}),
        "sync_sessions": len(rows),
        "success_rate": succeeded / len(rows) * 100,
    }


def _entity_stats(rows: list[dict]) -> dict:
    if not rows:
        return {
            "total_records_added": 0,
            "total_api_calls": 0,
            "avg_sync_duration_ms": 0.0,
            "success_rate": 0.0,
            "last_sync": None,
        }

    succeeded = sum(1 for row in rows if row["success"])
    return {
        "total_records_added": sum(row["records_processed"] or 0 for row in rows),
        "total_api_calls": sum(row["api_calls_used"] or 0 for row in rows),
        "avg_sync_duration_ms": sum(row["duration_ms"] or 0 for row in rows) / len(rows),
        "success_rate": succeeded / len(rows) * 100,
        "last_sync": rows[0]["start_time"],
    }
