"""Shared test fixtures for StudySmart tests."""

from __future__ import annotations

import os
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pytest
import yaml

from studysmart.models import Task
from studysmart.settings import Settings


TODAY = date(2026, 10, 19)


def make_task(**overrides: Any) -> Task:
    """A pending medium-priority 30-minute task due at noon on TODAY."""
    fields: dict[str, Any] = {
        "id": 1,
        "title": "Task",
        "due_date": datetime(2026, 10, 19, 12, 0),
        "priority": "medium",
        "estimated_time": 30,
    }
    fields.update(overrides)
    return Task(**fields)


class MemoryProfileStore:
    """In-memory ProfileStore; set fail_saves to simulate a broken disk."""

    def __init__(self) -> None:
        from studysmart.models import UserProfile
        self.profile = UserProfile()
        self.watermark: str | None = None
        self.saves = 0
        self.fail_saves = False

    async def load_profile(self):
        return self.profile

    async def save_profile(self, profile) -> None:
        from studysmart.storage import StorageError
        if self.fail_saves:
            raise StorageError("disk full")
        self.saves += 1
        self.profile = profile

    async def load_watermark(self):
        return self.watermark

    async def save_watermark(self, day: str) -> None:
        self.watermark = day


class MemoryTaskStore:
    """In-memory TaskStore holding Task objects and log tuples."""

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self.tasks = list(tasks or [])
        self.logs: list[tuple[int, str, int | None]] = []
        self.fail_reads = False

    async def init(self) -> None:
        pass

    async def create_task(self, task: Task) -> int:
        task.id = max((t.id for t in self.tasks), default=0) + 1
        self.tasks.append(task)
        return task.id

    async def get_tasks(self) -> list[Task]:
        from studysmart.storage import StorageError
        if self.fail_reads:
            raise StorageError("database is locked")
        return list(self.tasks)

    async def update_task(self, task: Task) -> None:
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    async def delete_task(self, task_id: int) -> None:
        self.tasks = [t for t in self.tasks if t.id != task_id]

    async def log_discipline(self, change: int, reason: str, task_id: int | None = None) -> None:
        self.logs.append((change, reason, task_id))

    async def get_discipline_logs(self):
        return []


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Create a temporary data root and point STUDYSMART_ROOT at it."""
    root = tmp_path / "studysmart"
    root.mkdir(parents=True)
    settings = {
        "timezone": "UTC",
        "storage": "sqlite",
        "start_time": "09:00",
        "max_daily_hours": 4,
        "grace_seconds": 0.05,
        "focus_penalty": 5,
    }
    (root / "settings.yaml").write_text(yaml.dump(settings, default_flow_style=False), encoding="utf-8")

    os.environ["STUDYSMART_ROOT"] = str(root)
    yield root
    if "STUDYSMART_ROOT" in os.environ:
        del os.environ["STUDYSMART_ROOT"]


@pytest.fixture
def settings(data_root: Path) -> Settings:
    return Settings(timezone="UTC", storage="sqlite", grace_seconds=0.05, root=data_root)
