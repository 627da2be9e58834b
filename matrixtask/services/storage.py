"""Persistence gateways for the task collection.

A gateway persists the *whole* collection on every save; the store never sends
deltas. All gateways raise :class:`StorageError` on any underlying failure and
materialize date fields as datetimes on load.
"""

import asyncio
import copy
import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

from ..exceptions import StorageError
from ..models.task import Task
from ..utils.logging import log_async_function_call

logger = logging.getLogger(__name__)

STORAGE_VERSION = "1.0.0"

TIMESTAMP_FIELDS = ("created_at", "updated_at", "completed_at")

# Key names written by the earlier browser-based store.
LEGACY_KEYS = {
    "isPinnedToToday": "is_pinned_to_today",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "completedAt": "completed_at",
}


def task_to_record(task: Task) -> Dict[str, Any]:
    """Serialize a task into a JSON-compatible dict."""
    return task.model_dump(mode="json")


def record_to_task(record: Dict[str, Any]) -> Task:
    """Rebuild a task from a stored record.

    Accepts both snake_case and legacy camelCase keys. Naive timestamps are
    taken to be UTC.
    """
    data = {LEGACY_KEYS.get(key, key): value for key, value in record.items()}
    task = Task.model_validate(data)

    fixes = {}
    for field in TIMESTAMP_FIELDS:
        value = getattr(task, field)
        if value is not None and value.tzinfo is None:
            fixes[field] = value.replace(tzinfo=timezone.utc)
    return task.model_copy(update=fixes) if fixes else task


class PersistenceGateway(ABC):
    """Async bulk save/load/clear contract used by the task store."""

    @abstractmethod
    async def save_tasks(self, tasks: Sequence[Task]) -> None:
        """Replace the persisted collection with ``tasks``."""

    @abstractmethod
    async def load_tasks(self) -> List[Task]:
        """Return every persisted task."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every persisted task."""


class InMemoryStorageService(PersistenceGateway):
    """Gateway that keeps serialized copies in process memory."""

    def __init__(self, tasks: Optional[Sequence[Task]] = None):
        self._records: List[Dict[str, Any]] = [task_to_record(t) for t in tasks or []]

    async def save_tasks(self, tasks: Sequence[Task]) -> None:
        self._records = [task_to_record(t) for t in tasks]
        logger.debug(f"Saved {len(self._records)} tasks in memory")

    async def load_tasks(self) -> List[Task]:
        return [record_to_task(copy.deepcopy(r)) for r in self._records]

    async def clear(self) -> None:
        self._records = []


class JsonFileStorageService(PersistenceGateway):
    """Gateway backed by a single versioned JSON document.

    Layout: ``{"version": "1.0.0", "tasks": [...]}``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def save_tasks(self, tasks: Sequence[Task]) -> None:
        records = [task_to_record(t) for t in tasks]
        try:
            await asyncio.to_thread(self._write, records)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save tasks to {self.path}", e) from e
        logger.debug(f"Saved {len(records)} tasks to {self.path}")

    async def load_tasks(self) -> List[Task]:
        try:
            data = await asyncio.to_thread(self._read)
            if data is None:
                return []

            version = data.get("version")
            if version != STORAGE_VERSION:
                logger.warning(f"Storage version mismatch: {version} != {STORAGE_VERSION}")

            return [record_to_task(r) for r in data.get("tasks", [])]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load tasks from {self.path}", e) from e

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._remove)
        except OSError as e:
            raise StorageError(f"Failed to clear {self.path}", e) from e

    def exists(self) -> bool:
        """Whether the backing file is present."""
        return self.path.exists()

    def _read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            content = f.read()
        if not content.strip():
            return None
        data = json.loads(content)
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected document in {self.path}")
        return data

    def _write(self, records: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"version": STORAGE_VERSION, "tasks": records}, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

    def _remove(self) -> None:
        if self.path.exists():
            self.path.unlink()


class SQLiteStorageService(PersistenceGateway):
    """Durable gateway over a SQLite database file.

    Blocking sqlite3 calls run in a worker thread so the event loop keeps
    dispatching other actions while a save is in flight.
    """

    table = "tasks"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialized = False

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        if self._initialized:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NULL,
                    quadrant TEXT NULL,
                    is_pinned_to_today INTEGER NOT NULL DEFAULT 0,
                    due_date TEXT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_completed_at ON {self.table}(completed_at)"
            )
        self._initialized = True

    @log_async_function_call("SQLiteStorageService.save_tasks")
    async def save_tasks(self, tasks: Sequence[Task]) -> None:
        rows = [self._task_to_row(t) for t in tasks]
        try:
            await asyncio.to_thread(self._replace_all, rows)
        except sqlite3.Error as e:
            raise StorageError("Failed to save tasks", e) from e
        except OSError as e:
            raise StorageError("Failed to open task database", e) from e

    @log_async_function_call("SQLiteStorageService.load_tasks")
    async def load_tasks(self) -> List[Task]:
        try:
            rows = await asyncio.to_thread(self._select_all)
            return [self._row_to_task(r) for r in rows]
        except Exception as e:
            raise StorageError("Failed to load tasks", e) from e

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._delete_all)
        except (sqlite3.Error, OSError) as e:
            raise StorageError("Failed to clear tasks", e) from e

    def _replace_all(self, rows: List[tuple]) -> None:
        self._init_db()
        with self._conn() as conn:
            # Whole-collection replace in a single transaction.
            conn.execute(f"DELETE FROM {self.table}")
            conn.executemany(
                f"""
                INSERT OR REPLACE INTO {self.table} (
                    id, title, description, quadrant, is_pinned_to_today,
                    due_date, tags, created_at, updated_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )

    def _select_all(self) -> List[sqlite3.Row]:
        self._init_db()
        with self._conn() as conn:
            return conn.execute(f"SELECT * FROM {self.table} ORDER BY rowid").fetchall()

    def _delete_all(self) -> None:
        self._init_db()
        with self._conn() as conn:
            conn.execute(f"DELETE FROM {self.table}")

    @staticmethod
    def _task_to_row(task: Task) -> tuple:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        return (
            str(task.id),
            task.title,
            task.description,
            task.quadrant.value if task.quadrant is not None else None,
            1 if task.is_pinned_to_today else 0,
            iso(task.due_date),
            json.dumps(task.tags, ensure_ascii=False),
            iso(task.created_at),
            iso(task.updated_at),
            iso(task.completed_at),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return record_to_task({
            "id": row["id"],
            "title": row["title"],
            "description": row["description"],
            "quadrant": row["quadrant"],
            "is_pinned_to_today": row["is_pinned_to_today"] == 1,
            "due_date": row["due_date"],
            "tags": json.loads(row["tags"]),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "completed_at": row["completed_at"],
        })
