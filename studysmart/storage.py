"""Storage interfaces and the flat-file (key-value) backends.

Two task backends exist: ``JsonTaskStore`` here, which keeps each collection
in one JSON document, and ``SqliteTaskStore`` in ``studysmart.database``.
The host picks one at startup; nothing else in the package cares which.

All operations are coroutines. Blocking file access runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from studysmart.fileio import read_json, write_json_atomic
from studysmart.models import DisciplineLog, Task, UserProfile
from studysmart.tasks import apply_daily_reset
from studysmart.workspace import (
    data_root,
    discipline_logs_path,
    profile_path,
    tasks_path,
    watermark_path,
)

logger = logging.getLogger(__name__)

MAX_LOGS_RETURNED = 50


class StorageError(Exception):
    """A store could not read or write its backing data."""


# ── Interfaces ────────────────────────────────────────────────


class TaskStore(Protocol):
    async def init(self) -> None: ...

    async def create_task(self, task: Task) -> int: ...

    async def get_tasks(self) -> list[Task]: ...

    async def update_task(self, task: Task) -> None: ...

    async def delete_task(self, task_id: int) -> None: ...

    async def log_discipline(self, change: int, reason: str, task_id: int | None = None) -> None: ...

    async def get_discipline_logs(self) -> list[DisciplineLog]: ...


class ProfileStore(Protocol):
    async def load_profile(self) -> UserProfile: ...

    async def save_profile(self, profile: UserProfile) -> None: ...

    async def load_watermark(self) -> str | None: ...

    async def save_watermark(self, day: str) -> None: ...


# ── Helpers ───────────────────────────────────────────────────


async def _run_io(func: Callable[..., Any], *args: Any) -> Any:
    """Run blocking file I/O off the event loop, mapping failures to StorageError."""
    try:
        return await asyncio.to_thread(func, *args)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        raise StorageError(str(e)) from e


# ── JSON task store ───────────────────────────────────────────


class JsonTaskStore:
    """Tasks and discipline logs kept as JSON documents under the data root."""

    def __init__(
        self,
        root: Path | None = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.root = root if root is not None else data_root()
        self._today = today
        self._now = now

    # Document layout: {"nextId": int, "tasks": [...]} and {"nextId": int, "logs": [...]}

    def _load_tasks_doc(self) -> dict[str, Any]:
        doc = read_json(tasks_path(self.root))
        doc.setdefault("tasks", [])
        return doc

    def _save_tasks_doc(self, doc: dict[str, Any]) -> None:
        write_json_atomic(tasks_path(self.root), doc)

    @staticmethod
    def _next_id(doc: dict[str, Any], key: str) -> int:
        existing = [int(item.get("id", 0) or 0) for item in doc.get(key, [])]
        return max([int(doc.get("nextId", 1) or 1), *(i + 1 for i in existing)])

    def _init_sync(self) -> None:
        tasks_path(self.root).parent.mkdir(parents=True, exist_ok=True)

    def _create_sync(self, task: Task) -> int:
        doc = self._load_tasks_doc()
        new_id = self._next_id(doc, "tasks")
        record = task.to_dict()
        record["id"] = new_id
        doc["tasks"].append(record)
        doc["nextId"] = new_id + 1
        self._save_tasks_doc(doc)
        return new_id

    def _get_sync(self) -> list[Task]:
        doc = self._load_tasks_doc()
        tasks = [Task.from_dict(t) for t in doc["tasks"]]
        today = self._today()
        changed = [t for t in tasks if apply_daily_reset(t, today)]
        if changed:
            doc["tasks"] = [t.to_dict() for t in tasks]
            try:
                self._save_tasks_doc(doc)
            except OSError as e:
                logger.warning("Failed to persist daily task reset: %s", e)
        return tasks

    def _update_sync(self, task: Task) -> None:
        doc = self._load_tasks_doc()
        for i, record in enumerate(doc["tasks"]):
            if int(record.get("id", 0) or 0) == task.id:
                doc["tasks"][i] = task.to_dict()
                self._save_tasks_doc(doc)
                return

    def _delete_sync(self, task_id: int) -> None:
        doc = self._load_tasks_doc()
        remaining = [r for r in doc["tasks"] if int(r.get("id", 0) or 0) != task_id]
        if len(remaining) != len(doc["tasks"]):
            doc["tasks"] = remaining
            self._save_tasks_doc(doc)

    def _log_sync(self, change: int, reason: str, task_id: int | None) -> None:
        path = discipline_logs_path(self.root)
        doc = read_json(path)
        doc.setdefault("logs", [])
        new_id = self._next_id(doc, "logs")
        entry = DisciplineLog(id=new_id, date=self._now(), change=change, reason=reason, task_id=task_id)
        doc["logs"].append(entry.to_dict())
        doc["nextId"] = new_id + 1
        write_json_atomic(path, doc)

    def _logs_sync(self) -> list[DisciplineLog]:
        doc = read_json(discipline_logs_path(self.root))
        logs = [DisciplineLog.from_dict(e) for e in (doc.get("logs") or [])]
        logs.sort(key=lambda e: (e.date, e.id), reverse=True)
        return logs[:MAX_LOGS_RETURNED]

    async def init(self) -> None:
        await _run_io(self._init_sync)

    async def create_task(self, task: Task) -> int:
        return await _run_io(self._create_sync, task)

    async def get_tasks(self) -> list[Task]:
        """All tasks, after resetting daily chores completed on an earlier day."""
        return await _run_io(self._get_sync)

    async def update_task(self, task: Task) -> None:
        await _run_io(self._update_sync, task)

    async def delete_task(self, task_id: int) -> None:
        await _run_io(self._delete_sync, task_id)

    async def log_discipline(self, change: int, reason: str, task_id: int | None = None) -> None:
        await _run_io(self._log_sync, change, reason, task_id)

    async def get_discipline_logs(self) -> list[DisciplineLog]:
        """Newest first, at most 50."""
        return await _run_io(self._logs_sync)


# ── JSON profile store ────────────────────────────────────────


class JsonProfileStore:
    """User profile and the evaluation watermark as small JSON files."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root if root is not None else data_root()

    def _load_sync(self) -> UserProfile:
        path = profile_path(self.root)
        if not path.exists():
            profile = UserProfile()
            write_json_atomic(path, profile.to_dict())
            return profile
        return UserProfile.from_dict(read_json(path))

    def _load_watermark_sync(self) -> str | None:
        value = read_json(watermark_path(self.root)).get("lastEvaluation")
        return str(value) if value else None

    async def load_profile(self) -> UserProfile:
        """Load the profile, creating and saving the default one on first run."""
        return await _run_io(self._load_sync)

    async def save_profile(self, profile: UserProfile) -> None:
        await _run_io(write_json_atomic, profile_path(self.root), profile.to_dict())

    async def load_watermark(self) -> str | None:
        return await _run_io(self._load_watermark_sync)

    async def save_watermark(self, day: str) -> None:
        await _run_io(write_json_atomic, watermark_path(self.root), {"lastEvaluation": day})
