"""Application session: stores, discipline engine and focus monitor in one place.

The host (web UI, TUI, tests) creates one session at startup and passes it
around. There is no module-level state.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from studysmart.database import SqliteTaskStore
from studysmart.discipline import DisciplineEngine
from studysmart.focus import AppStateSource, FocusSessionMonitor, Notifier
from studysmart.models import DisciplineLog, StudyPlan, StudyPlanConfig, Task, UserProfile
from studysmart.scheduler import generate_schedule
from studysmart.settings import Settings, load_settings
from studysmart.storage import JsonProfileStore, JsonTaskStore, ProfileStore, StorageError, TaskStore
from studysmart.tasks import (
    apply_updates,
    new_task,
    pending_tasks,
    today_progress,
    toggle_completed,
    toggle_today,
)
from studysmart.workspace import data_root, database_path

logger = logging.getLogger(__name__)


class AppSession:
    def __init__(
        self,
        settings: Settings,
        tasks: TaskStore,
        profiles: ProfileStore,
        notifier: Notifier | None,
        app_state: AppStateSource | None = None,
    ) -> None:
        self.settings = settings
        self.tasks = tasks
        self.profiles = profiles
        self.notifier = notifier
        self.app_state = app_state or AppStateSource()
        self.engine = DisciplineEngine(tasks, profiles, today=settings.today)
        self.monitor = FocusSessionMonitor(
            self.engine,
            self.app_state,
            notifier,
            grace_seconds=settings.grace_seconds,
            penalty=settings.focus_penalty,
        )
        self._task_cache: list[Task] = []

    @property
    def profile(self) -> UserProfile:
        return self.engine.profile

    # ── Startup ───────────────────────────────────────────────

    async def startup(self) -> dict[str, Any]:
        """Init storage, load the profile, run the daily sweep, resume focus mode."""
        try:
            await self.tasks.init()
        except StorageError as e:
            logger.warning("Task storage init failed: %s", e)
        await self.engine.load_profile()
        evaluation = await self.engine.evaluate_daily_progress()
        await self.sync_focus_monitor()
        return evaluation

    async def shutdown(self) -> None:
        self.monitor.stop_focus_mode()
        if not await self.engine.flush():
            logger.warning("Profile changes could not be saved before shutdown")
        close = getattr(self.tasks, "close", None)
        if close is not None:
            close()

    async def sync_focus_monitor(self) -> None:
        """Start the monitor when the profile says focus mode is on (e.g. forced below 50)."""
        if self.profile.is_focus_mode_active and not self.monitor.is_focus_mode_active():
            result = await self.monitor.start_focus_mode()
            if not result["ok"]:
                logger.warning("Focus mode is on but monitoring could not start: %s", result["reason"])

    # ── Scheduling ────────────────────────────────────────────

    def generate_schedule(self, tasks: list[Task], config: StudyPlanConfig) -> StudyPlan:
        return generate_schedule(tasks, config, day=self.settings.today())

    async def plan(self, start_time: Any = None, max_daily_hours: Any = None) -> StudyPlan:
        """Plan today from raw UI input; missing values come from settings."""
        config = StudyPlanConfig.from_values(
            start_time if start_time not in (None, "") else self.settings.start_time,
            max_daily_hours if max_daily_hours not in (None, "") else self.settings.max_daily_hours,
        )
        return self.generate_schedule(await self.list_tasks(), config)

    # ── Discipline ────────────────────────────────────────────

    async def evaluate_daily_progress(self) -> dict[str, Any]:
        result = await self.engine.evaluate_daily_progress()
        await self.sync_focus_monitor()
        return result

    async def update_discipline_score(self, delta: int) -> UserProfile:
        profile = await self.engine.update_discipline_score(delta)
        await self.sync_focus_monitor()
        return profile

    async def set_focus_mode(self, active: bool) -> dict[str, Any]:
        """User toggle. Turning on needs the monitor to start first."""
        if active:
            return await self.enable_focus_mode()
        return await self.disable_focus_mode()

    async def enable_focus_mode(self) -> dict[str, Any]:
        if self.profile.is_focus_mode_active and self.monitor.is_focus_mode_active():
            return {"ok": True, "active": True}
        tasks = await self.list_tasks()
        # Lock rules first, so a refused toggle never prompts for permission
        if not self.profile.is_focus_mode_active:
            if not pending_tasks(tasks):
                return await self.engine.set_focus_mode(True, tasks)
        started = await self.monitor.start_focus_mode()
        if not started["ok"]:
            return started
        return await self.engine.set_focus_mode(True, tasks)

    async def disable_focus_mode(self) -> dict[str, Any]:
        result = await self.engine.set_focus_mode(False)
        if result["ok"]:
            self.monitor.stop_focus_mode()
        return result

    async def start_focus_mode(self) -> dict[str, Any]:
        return await self.monitor.start_focus_mode()

    def stop_focus_mode(self) -> None:
        self.monitor.stop_focus_mode()

    def is_focus_mode_active(self) -> bool:
        return self.monitor.is_focus_mode_active()

    async def discipline_logs(self) -> list[DisciplineLog]:
        try:
            return await self.tasks.get_discipline_logs()
        except StorageError as e:
            logger.warning("Could not read discipline logs: %s", e)
            return []

    # ── Tasks ─────────────────────────────────────────────────

    async def list_tasks(self) -> list[Task]:
        """Current tasks; falls back to the last successful read on storage errors."""
        try:
            self._task_cache = await self.tasks.get_tasks()
        except StorageError as e:
            logger.warning("Could not read tasks, using last known list: %s", e)
        return list(self._task_cache)

    async def find_task(self, task_id: int) -> Task | None:
        for t in await self.list_tasks():
            if t.id == task_id:
                return t
        return None

    async def add_task(self, data: dict[str, Any]) -> tuple[Task, list[str]]:
        task, errors = new_task(data, self.settings.tzinfo())
        if errors:
            return task, errors
        task.id = await self.tasks.create_task(task)
        return task, []

    async def edit_task(self, task_id: int, updates: dict[str, Any]) -> tuple[Task | None, list[str]]:
        task = await self.find_task(task_id)
        if task is None:
            return None, [f"Task not found: {task_id}"]
        updated, errors = apply_updates(task, updates, self.settings.tzinfo())
        if errors or updated is None:
            return None, errors
        await self.tasks.update_task(updated)
        return updated, []

    async def toggle_complete(self, task_id: int) -> Task | None:
        task = await self.find_task(task_id)
        if task is None:
            return None
        toggle_completed(task, self.settings.now())
        await self.tasks.update_task(task)
        return task

    async def toggle_today(self, task_id: int) -> Task | None:
        task = await self.find_task(task_id)
        if task is None:
            return None
        toggle_today(task)
        await self.tasks.update_task(task)
        return task

    async def remove_task(self, task_id: int) -> bool:
        if await self.find_task(task_id) is None:
            return False
        await self.tasks.delete_task(task_id)
        return True

    async def today_progress(self) -> float:
        return today_progress(await self.list_tasks())


def open_session(
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    root: Path | None = None,
) -> AppSession:
    """Build a session with the storage backend named in settings."""
    if root is None:
        root = settings.root if settings is not None and settings.root is not None else data_root()
    if settings is None:
        settings = load_settings(root)
    if settings.root is None:
        settings.root = root

    today = settings.today
    now = settings.now
    if settings.storage == "json":
        tasks: TaskStore = JsonTaskStore(root, today=today, now=now)
    else:
        tasks = SqliteTaskStore(database_path(root), today=today, now=now)
    return AppSession(settings, tasks, JsonProfileStore(root), notifier)

