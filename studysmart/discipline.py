"""Discipline scoring for StudySmart.

The daily sweep penalizes pinned tasks left pending past their due day.
It is idempotent within a calendar day: a persisted watermark records the
last day it ran, and a second call on the same day does nothing.

Score updates clamp to [0, 100] and force focus mode on below 50. Focus
mode is sticky: only an explicit ``set_focus_mode(False)`` clears it, and
only once the score is back at 50 or above.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from studysmart.models import FOCUS_THRESHOLD, MAX_POINTS, MIN_POINTS, Task, UserProfile
from studysmart.storage import ProfileStore, StorageError, TaskStore
from studysmart.tasks import missed_tasks, pending_tasks

logger = logging.getLogger(__name__)


# ── Penalty rules ─────────────────────────────────────────────

BASE_PENALTY = 5
PRIORITY_PENALTY = {"high": 10, "medium": 5, "low": 2}
DAILY_PENALTY_FLOOR = 5


def compute_penalty(task: Task) -> int:
    """Points lost for one missed task. Daily chores never cost less than 5."""
    penalty = PRIORITY_PENALTY.get(task.priority, BASE_PENALTY)
    if task.is_daily:
        penalty = max(penalty, DAILY_PENALTY_FLOOR)
    return penalty


def clamp_points(points: int) -> int:
    return max(MIN_POINTS, min(MAX_POINTS, points))


def apply_score_delta(profile: UserProfile, delta: int) -> UserProfile:
    """Return the profile after a score change, without saving it."""
    new_points = clamp_points(profile.discipline_points + delta)
    return UserProfile(
        username=profile.username,
        discipline_points=new_points,
        streak=profile.streak,
        is_focus_mode_active=profile.is_focus_mode_active or new_points < FOCUS_THRESHOLD,
    )


# ── Engine ────────────────────────────────────────────────────


class DisciplineEngine:
    """Owns the in-memory profile and writes it through to the profile store.

    When a save fails the in-memory profile still holds the change and is
    marked dirty; the next save writes the current state.
    """

    def __init__(
        self,
        tasks: TaskStore,
        profiles: ProfileStore,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.tasks = tasks
        self.profiles = profiles
        self._today = today
        self.profile = UserProfile()
        self.dirty = False

    async def load_profile(self) -> UserProfile:
        try:
            self.profile = await self.profiles.load_profile()
            self.dirty = False
        except StorageError as e:
            logger.warning("Could not load profile, keeping in-memory copy: %s", e)
        return self.profile

    async def _commit(self, profile: UserProfile) -> bool:
        self.profile = profile
        try:
            await self.profiles.save_profile(profile)
        except StorageError as e:
            self.dirty = True
            logger.warning("Profile save failed, will retry on next save: %s", e)
            return False
        self.dirty = False
        return True

    async def flush(self) -> bool:
        """Retry a profile save that failed earlier. True when nothing is left unsaved."""
        if not self.dirty:
            return True
        return await self._commit(self.profile)

    async def update_discipline_score(self, delta: int) -> UserProfile:
        """Apply a score change: clamp, force focus below 50, save once."""
        updated = apply_score_delta(self.profile, delta)
        await self._commit(updated)
        logger.info(
            "Discipline score %+d -> %d (focus %s)",
            delta, updated.discipline_points, "on" if updated.is_focus_mode_active else "off",
        )
        return updated

    async def set_focus_mode(self, active: bool, tasks: list[Task] | None = None) -> dict[str, Any]:
        """User toggle for focus mode, subject to the lock rules.

        Refuses to deactivate while the score is below 50, and refuses to
        activate when nothing is pending.
        """
        if not active and self.profile.is_locked:
            return {
                "ok": False,
                "reason": "locked",
                "message": "Discipline score too low. You cannot disable Focus Mode yet.",
            }
        if active and not self.profile.is_focus_mode_active:
            if tasks is None:
                try:
                    tasks = await self.tasks.get_tasks()
                except StorageError as e:
                    logger.warning("Could not read tasks for focus toggle: %s", e)
                    return {"ok": False, "reason": "storage-unavailable"}
            if not pending_tasks(tasks):
                return {
                    "ok": False,
                    "reason": "no-pending-tasks",
                    "message": "You have no pending tasks. No need for focus mode.",
                }

        updated = UserProfile(
            username=self.profile.username,
            discipline_points=self.profile.discipline_points,
            streak=self.profile.streak,
            is_focus_mode_active=active,
        )
        saved = await self._commit(updated)
        return {"ok": True, "active": active, "saved": saved}

    async def evaluate_daily_progress(self) -> dict[str, Any]:
        """Penalize pinned tasks missed on an earlier day. Runs once per day."""
        today = self._today()
        day = today.isoformat()

        try:
            last = await self.profiles.load_watermark()
        except StorageError as e:
            logger.warning("Could not read evaluation watermark: %s", e)
            return {"ok": False, "reason": "storage-unavailable", "day": day}
        if last == day:
            return {"ok": True, "day": day, "already_evaluated": True}

        try:
            tasks = await self.tasks.get_tasks()
        except StorageError as e:
            logger.warning("Skipping daily evaluation, tasks unavailable: %s", e)
            return {"ok": False, "reason": "storage-unavailable", "day": day}

        missed = missed_tasks(tasks, today)
        total = 0
        for task in missed:
            penalty = compute_penalty(task)
            total += penalty
            try:
                await self.tasks.log_discipline(-penalty, f"Missed overdue task: {task.title}", task.id)
            except StorageError as e:
                logger.warning("Could not log penalty for task %s: %s", task.id, e)

        if total > 0:
            await self.update_discipline_score(-total)
            logger.info("Discipline: penalized %d points for %d missed task(s)", total, len(missed))

        try:
            await self.profiles.save_watermark(day)
        except StorageError as e:
            logger.warning("Could not save evaluation watermark: %s", e)

        return {
            "ok": True,
            "day": day,
            "missed": [t.id for t in missed],
            "penalty": total,
            "points": self.profile.discipline_points,
        }
