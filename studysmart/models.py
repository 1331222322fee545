"""Typed dataclasses for the StudySmart data model.

All models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any

logger = logging.getLogger(__name__)


PRIORITIES = ("low", "medium", "high")
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_OVERDUE = "overdue"  # display only, never persisted

FOCUS_THRESHOLD = 50
MIN_POINTS = 0
MAX_POINTS = 100

DEFAULT_START_TIME = "09:00"
DEFAULT_DAILY_HOURS = 4.0


def parse_datetime(value: Any, tz: tzinfo | None = None) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix allowed) into a naive datetime.

    Timestamps carrying an offset are converted to wall-clock time in *tz*
    (the host zone when omitted) so every stored date compares against
    every other.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz).replace(tzinfo=None)
    return dt


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="seconds")


def _to_bool(value: Any) -> bool:
    # SQLite and older JSON dumps store flags as 0/1
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: int = 0
    title: str = ""
    due_date: datetime = field(default_factory=datetime.now)
    priority: str = "medium"  # low, medium, high
    estimated_time: int = 30  # minutes
    status: str = STATUS_PENDING  # pending, completed
    description: str = ""
    is_daily: bool = False
    completed_at: datetime | None = None
    is_today: bool = False

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def is_overdue(self, now: datetime) -> bool:
        return self.status == STATUS_PENDING and self.due_date < now.replace(tzinfo=None)

    def display_status(self, now: datetime) -> str:
        return STATUS_OVERDUE if self.is_overdue(now) else self.status

    @classmethod
    def from_dict(cls, d: dict[str, Any], tz: tzinfo | None = None) -> Task:
        status = str(d.get("status", STATUS_PENDING))
        if status not in (STATUS_PENDING, STATUS_COMPLETED):
            status = STATUS_PENDING
        # Legacy records may carry only the boolean flag
        if "completed" in d and "status" not in d:
            status = STATUS_COMPLETED if _to_bool(d["completed"]) else STATUS_PENDING
        return cls(
            id=int(d.get("id", 0) or 0),
            title=str(d.get("title", "")),
            due_date=parse_datetime(d.get("dueDate"), tz) or datetime.now(),
            priority=str(d.get("priority", "medium")),
            estimated_time=int(d.get("estimatedTime", 30) or 0),
            status=status,
            description=str(d.get("description") or ""),
            is_daily=_to_bool(d.get("isDaily", False)),
            completed_at=parse_datetime(d.get("completedAt"), tz),
            is_today=_to_bool(d.get("isToday", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": format_datetime(self.due_date),
            "priority": self.priority,
            "estimatedTime": self.estimated_time,
            "status": self.status,
            "isDaily": self.is_daily,
            "completed": self.completed,
            "completedAt": format_datetime(self.completed_at),
            "isToday": self.is_today,
        }


# ── Profile ───────────────────────────────────────────────────


@dataclass
class UserProfile:
    username: str = "Student"
    discipline_points: int = MAX_POINTS
    streak: int = 0
    is_focus_mode_active: bool = False

    @property
    def discipline_score(self) -> int:
        """Legacy name for the score, kept for older consumers."""
        return self.discipline_points

    @property
    def is_locked(self) -> bool:
        return self.discipline_points < FOCUS_THRESHOLD

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UserProfile:
        if not d or not isinstance(d, dict):
            return cls()
        points = d.get("disciplinePoints", d.get("disciplineScore", MAX_POINTS))
        try:
            points = int(points)
        except (TypeError, ValueError):
            logger.warning("Invalid discipline points %r, using %d", points, MAX_POINTS)
            points = MAX_POINTS
        return cls(
            username=str(d.get("username", "Student")),
            discipline_points=max(MIN_POINTS, min(MAX_POINTS, points)),
            streak=int(d.get("streak") or 0),
            is_focus_mode_active=_to_bool(d.get("isFocusModeActive", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "disciplinePoints": self.discipline_points,
            "disciplineScore": self.discipline_score,
            "streak": self.streak,
            "isFocusModeActive": self.is_focus_mode_active,
        }


# ── Discipline Log ────────────────────────────────────────────


@dataclass
class DisciplineLog:
    id: int = 0
    date: datetime = field(default_factory=datetime.now)
    change: int = 0
    reason: str = ""
    task_id: int | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DisciplineLog:
        task_id = d.get("taskId")
        return cls(
            id=int(d.get("id", 0) or 0),
            date=parse_datetime(d.get("date")) or datetime.now(),
            change=int(d.get("change", 0)),
            reason=str(d.get("reason", "")),
            task_id=int(task_id) if task_id is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": format_datetime(self.date),
            "change": self.change,
            "reason": self.reason,
            "taskId": self.task_id,
        }


# ── Scheduler ─────────────────────────────────────────────────


def parse_clock(s: str) -> tuple[int, int]:
    """Parse 'HH:MM' into an (hour, minute) pair."""
    parts = s.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time of day: {s!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {s!r}")
    return hour, minute


@dataclass
class StudyPlanConfig:
    start_time: str = DEFAULT_START_TIME
    max_daily_hours: float = DEFAULT_DAILY_HOURS

    @classmethod
    def from_values(cls, start_time: Any = None, max_daily_hours: Any = None) -> StudyPlanConfig:
        """Build a config from raw form input, falling back to defaults."""
        start = str(start_time).strip() if start_time not in (None, "") else DEFAULT_START_TIME
        try:
            parse_clock(start)
        except ValueError:
            logger.warning("Invalid start time %r, using %s", start_time, DEFAULT_START_TIME)
            start = DEFAULT_START_TIME

        if max_daily_hours in (None, ""):
            hours = DEFAULT_DAILY_HOURS
        else:
            try:
                hours = float(max_daily_hours)
            except (TypeError, ValueError):
                logger.warning("Invalid study hours %r, using %s", max_daily_hours, DEFAULT_DAILY_HOURS)
                hours = DEFAULT_DAILY_HOURS
            if math.isnan(hours):
                hours = DEFAULT_DAILY_HOURS
        return cls(start_time=start, max_daily_hours=hours)


@dataclass
class ScheduledTask:
    task: Task
    start_time: datetime
    end_time: datetime

    def to_dict(self) -> dict[str, Any]:
        d = self.task.to_dict()
        d["startTime"] = format_datetime(self.start_time)
        d["endTime"] = format_datetime(self.end_time)
        return d


@dataclass
class PlanSummary:
    total_study_minutes: int = 0
    tasks_deferred: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalStudyMinutes": self.total_study_minutes,
            "tasksDeferred": self.tasks_deferred,
        }


@dataclass
class StudyPlan:
    today_schedule: list[ScheduledTask] = field(default_factory=list)
    upcoming_tasks: list[Task] = field(default_factory=list)
    summary: PlanSummary = field(default_factory=PlanSummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "todaySchedule": [s.to_dict() for s in self.today_schedule],
            "upcomingTasks": [t.to_dict() for t in self.upcoming_tasks],
            "summary": self.summary.to_dict(),
        }
