"""SQLite task store built on SQLAlchemy."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, create_engine, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from studysmart.models import STATUS_PENDING, DisciplineLog, Task
from studysmart.storage import MAX_LOGS_RETURNED, StorageError
from studysmart.workspace import database_path

logger = logging.getLogger(__name__)

Base = declarative_base()


class TaskRow(Base):
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, default="")
    due_date = Column(DateTime, nullable=False, index=True)
    priority = Column(String(10), nullable=False, default="medium")
    estimated_time = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    is_daily = Column(Boolean, default=False)
    completed_at = Column(DateTime, nullable=True)
    is_today = Column(Boolean, default=False)

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description or "",
            due_date=self.due_date,
            priority=self.priority,
            estimated_time=self.estimated_time,
            status=self.status,
            is_daily=bool(self.is_daily),
            completed_at=self.completed_at,
            is_today=bool(self.is_today),
        )


class DisciplineLogRow(Base):
    __tablename__ = "discipline_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(DateTime, nullable=False, index=True)
    change = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    task_id = Column(Integer, nullable=True)

    def to_log(self) -> DisciplineLog:
        return DisciplineLog(
            id=self.id, date=self.date, change=self.change, reason=self.reason, task_id=self.task_id,
        )


def _task_columns(task: Task) -> dict[str, Any]:
    return {
        "title": task.title,
        "description": task.description or "",
        "due_date": task.due_date,
        "priority": task.priority,
        "estimated_time": task.estimated_time,
        "status": task.status,
        "is_daily": task.is_daily,
        "completed_at": task.completed_at,
        "is_today": task.is_today,
    }


class SqliteTaskStore:
    """Tasks and discipline logs in a local SQLite database."""

    def __init__(
        self,
        path: Path | None = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        if path is None:
            path = database_path()
        self.path = path
        self.engine = create_engine(
            f"sqlite:///{path}",
            connect_args={"check_same_thread": False},
        )
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self._today = today
        self._now = now

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(str(e)) from e

    def _init_sync(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized at %s", self.path)

    def _create_sync(self, task: Task) -> int:
        with self.Session() as db:
            row = TaskRow(**_task_columns(task))
            db.add(row)
            db.commit()
            return row.id

    def _reset_daily_sync(self) -> None:
        # Daily chores completed before today come back pending and pinned
        start_of_today = datetime.combine(self._today(), datetime.min.time())
        with self.Session() as db:
            result = db.execute(
                update(TaskRow)
                .where(
                    TaskRow.is_daily.is_(True),
                    TaskRow.completed_at.is_not(None),
                    TaskRow.completed_at < start_of_today,
                )
                .values(status=STATUS_PENDING, completed_at=None, is_today=True)
            )
            db.commit()
            if result.rowcount:
                logger.info("Reset %d daily task(s)", result.rowcount)

    def _get_sync(self) -> list[Task]:
        try:
            self._reset_daily_sync()
        except SQLAlchemyError as e:
            logger.warning("Failed to reset daily tasks: %s", e)
        with self.Session() as db:
            rows = db.scalars(select(TaskRow).order_by(TaskRow.id)).all()
            return [r.to_task() for r in rows]

    def _update_sync(self, task: Task) -> None:
        with self.Session() as db:
            db.execute(update(TaskRow).where(TaskRow.id == task.id).values(**_task_columns(task)))
            db.commit()

    def _delete_sync(self, task_id: int) -> None:
        with self.Session() as db:
            db.execute(delete(TaskRow).where(TaskRow.id == task_id))
            db.commit()

    def _log_sync(self, change: int, reason: str, task_id: int | None) -> None:
        with self.Session() as db:
            db.add(DisciplineLogRow(date=self._now(), change=change, reason=reason, task_id=task_id))
            db.commit()

    def _logs_sync(self) -> list[DisciplineLog]:
        with self.Session() as db:
            rows = db.scalars(
                select(DisciplineLogRow)
                .order_by(DisciplineLogRow.date.desc(), DisciplineLogRow.id.desc())
                .limit(MAX_LOGS_RETURNED)
            ).all()
            return [r.to_log() for r in rows]

    async def init(self) -> None:
        await self._run(self._init_sync)

    async def create_task(self, task: Task) -> int:
        return await self._run(self._create_sync, task)

    async def get_tasks(self) -> list[Task]:
        """All tasks, after resetting daily chores completed on an earlier day."""
        return await self._run(self._get_sync)

    async def update_task(self, task: Task) -> None:
        await self._run(self._update_sync, task)

    async def delete_task(self, task_id: int) -> None:
        await self._run(self._delete_sync, task_id)

    async def log_discipline(self, change: int, reason: str, task_id: int | None = None) -> None:
        await self._run(self._log_sync, change, reason, task_id)

    async def get_discipline_logs(self) -> list[DisciplineLog]:
        """Newest first, at most 50."""
        return await self._run(self._logs_sync)

    def close(self) -> None:
        self.engine.dispose()
