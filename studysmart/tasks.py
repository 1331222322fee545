"""Task validation, lifecycle transitions, and the daily-chore reset."""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Any

from studysmart.models import (
    PRIORITIES,
    STATUS_COMPLETED,
    STATUS_PENDING,
    Task,
    parse_datetime,
)


# ── Validation ────────────────────────────────────────────────


EDITABLE_FIELDS = {"title", "description", "dueDate", "priority", "estimatedTime", "isDaily", "isToday"}


def validate_task(task: dict[str, Any]) -> list[str]:
    """Validate task input and return list of errors (empty if valid)."""
    errors = []
    title = task.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Missing required field: title")

    if "dueDate" not in task or task["dueDate"] in (None, ""):
        errors.append("Missing required field: dueDate")
    else:
        try:
            parse_datetime(task["dueDate"])
        except (TypeError, ValueError):
            errors.append(f"Invalid dueDate: {task['dueDate']!r}")

    if "priority" in task and task["priority"] not in PRIORITIES:
        errors.append(f"Invalid priority: {task['priority']}")

    est = task.get("estimatedTime")
    if est is None:
        errors.append("Missing required field: estimatedTime")
    elif isinstance(est, bool) or not isinstance(est, int) or est <= 0:
        errors.append("estimatedTime must be a positive integer (minutes)")

    return errors


def new_task(data: dict[str, Any], tz: tzinfo | None = None) -> tuple[Task, list[str]]:
    """Build an unsaved task from form input. Returns (task, errors).

    New tasks always start pending, whatever the input says.
    """
    errors = validate_task(data)
    if errors:
        return Task(), errors
    fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    task = Task.from_dict(fields, tz)
    task.id = 0
    task.status = STATUS_PENDING
    task.completed_at = None
    return task, []


def apply_updates(
    task: Task,
    updates: dict[str, Any],
    tz: tzinfo | None = None,
) -> tuple[Task | None, list[str]]:
    """Return an edited copy of *task*. Completion state is not editable here.

    Offset-carrying dates in *updates* are converted to wall-clock time in *tz*.
    """
    merged = task.to_dict()
    merged.update({k: v for k, v in updates.items() if k in EDITABLE_FIELDS})
    errors = validate_task(merged)
    if errors:
        return None, errors
    return Task.from_dict(merged, tz), []


# ── Lifecycle ─────────────────────────────────────────────────


def set_completed(task: Task, done: bool, now: datetime) -> None:
    """Mark a task done or not done, keeping status and completed_at together."""
    if done:
        task.status = STATUS_COMPLETED
        task.completed_at = now
    else:
        task.status = STATUS_PENDING
        task.completed_at = None


def toggle_completed(task: Task, now: datetime) -> None:
    set_completed(task, not task.completed, now)


def toggle_today(task: Task) -> None:
    task.is_today = not task.is_today


def apply_daily_reset(task: Task, today: date) -> bool:
    """Reset a daily chore completed on an earlier day. Returns True if changed.

    The chore comes back pending and pinned to today.
    """
    if not task.is_daily or task.completed_at is None:
        return False
    if task.completed_at.date() >= today:
        return False
    task.status = STATUS_PENDING
    task.completed_at = None
    task.is_today = True
    return True


# ── Queries ───────────────────────────────────────────────────


def pending_tasks(tasks: list[Task]) -> list[Task]:
    return [t for t in tasks if t.status == STATUS_PENDING]


def missed_tasks(tasks: list[Task], today: date) -> list[Task]:
    """Pinned tasks still pending whose due day is already behind us."""
    return [
        t for t in tasks
        if t.status == STATUS_PENDING and t.is_today and t.due_date.date() < today
    ]


def today_progress(tasks: list[Task]) -> float:
    """Share of today-pinned tasks that are done (0.0 when none are pinned)."""
    pinned = [t for t in tasks if t.is_today]
    if not pinned:
        return 0.0
    return sum(1 for t in pinned if t.completed) / len(pinned)
