"""Focus mode enforcement for StudySmart.

While focus mode is on, leaving the app starts a grace timer. Coming back
before it expires cancels it; otherwise the score drops and the user gets
a notification. One background episode costs at most one penalty.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

from studysmart.discipline import DisciplineEngine
from studysmart.storage import StorageError

logger = logging.getLogger(__name__)

APP_BACKGROUND = "background"
APP_ACTIVE = "active"

STATE_INACTIVE = "inactive"
STATE_FOREGROUND = "active-foregrounded"
STATE_BACKGROUND = "active-backgrounded"

DEFAULT_GRACE_SECONDS = 5.0
DEFAULT_FOCUS_PENALTY = 5


# ── Lifecycle signal source ───────────────────────────────────


class AppStateSource:
    """Fan-out of app foreground/background transitions to subscribers."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[str], None]] = []
        self.current = APP_ACTIVE

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, state: str) -> None:
        if state not in (APP_BACKGROUND, APP_ACTIVE):
            raise ValueError(f"Unknown app state: {state!r}")
        self.current = state
        for listener in list(self._listeners):
            listener(state)


# ── Notifications ─────────────────────────────────────────────


class NotificationUnavailable(Exception):
    """The host has no way to show notifications."""


class Notifier(Protocol):
    async def request_permission(self) -> bool: ...

    async def schedule_notification(self, title: str, body: str) -> None: ...


class LogNotifier:
    """Notifier that logs each message and keeps it in an outbox for polling."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.outbox: list[dict[str, str]] = []

    async def request_permission(self) -> bool:
        return self.granted

    async def schedule_notification(self, title: str, body: str) -> None:
        logger.info("Notification: %s: %s", title, body)
        self.outbox.append({"title": title, "body": body})

    def drain(self) -> list[dict[str, str]]:
        items, self.outbox = self.outbox, []
        return items


# ── Monitor ───────────────────────────────────────────────────


class FocusSessionMonitor:
    def __init__(
        self,
        engine: DisciplineEngine,
        app_state: AppStateSource,
        notifier: Notifier | None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        penalty: int = DEFAULT_FOCUS_PENALTY,
    ) -> None:
        self.engine = engine
        self.app_state = app_state
        self.notifier = notifier
        self.grace_seconds = grace_seconds
        self.penalty = penalty
        self._active = False
        self._backgrounded = False
        self._unsubscribe: Callable[[], None] | None = None
        self._timer: asyncio.Task | None = None
        self._penalties: set[asyncio.Task] = set()
        self._permission_granted = False

    @property
    def state(self) -> str:
        if not self._active:
            return STATE_INACTIVE
        return STATE_BACKGROUND if self._backgrounded else STATE_FOREGROUND

    def is_focus_mode_active(self) -> bool:
        return self._active

    async def start_focus_mode(self) -> dict[str, Any]:
        """Begin watching app transitions. Needs notification permission once."""
        if self._active:
            return {"ok": True, "already_active": True}

        if not self._permission_granted:
            if self.notifier is None:
                return {
                    "ok": False,
                    "reason": "notifications-unavailable",
                    "message": "Notifications are not available on this platform.",
                }
            try:
                granted = await self.notifier.request_permission()
            except NotificationUnavailable as e:
                logger.warning("Notifications unavailable: %s", e)
                return {
                    "ok": False,
                    "reason": "notifications-unavailable",
                    "message": "Notifications are not available on this platform.",
                }
            if not granted:
                return {
                    "ok": False,
                    "reason": "permission-denied",
                    "message": "You need to enable notifications for the focus mode to work correctly.",
                }
            self._permission_granted = True

        self._active = True
        self._backgrounded = False
        self._unsubscribe = self.app_state.subscribe(self.handle_app_state)
        logger.info("Focus Mode Started")
        return {"ok": True}

    def stop_focus_mode(self) -> None:
        if not self._active:
            return
        self._active = False
        self._backgrounded = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_timer()
        logger.info("Focus Mode Stopped")

    def handle_app_state(self, state: str) -> None:
        """React to a lifecycle transition. Must run on the event loop thread."""
        if not self._active:
            return
        if state == APP_BACKGROUND:
            if self._backgrounded:
                return
            self._backgrounded = True
            self._cancel_timer()
            self._timer = asyncio.get_running_loop().create_task(self._grace_period())
        elif state == APP_ACTIVE:
            self._backgrounded = False
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _grace_period(self) -> None:
        await asyncio.sleep(self.grace_seconds)
        # Past this point returning to the app no longer cancels the penalty
        task = asyncio.current_task()
        if self._timer is task:
            self._timer = None
        if task is not None:
            self._penalties.add(task)
        try:
            await self._apply_penalty()
        finally:
            if task is not None:
                self._penalties.discard(task)

    async def _apply_penalty(self) -> None:
        profile = await self.engine.update_discipline_score(-self.penalty)
        try:
            await self.engine.tasks.log_discipline(-self.penalty, "Left the app during focus mode")
        except StorageError as e:
            logger.warning("Could not log focus penalty: %s", e)

        if self.notifier is None:
            return
        try:
            await self.notifier.schedule_notification(
                "Focus Lost!",
                f"You lost {self.penalty} discipline points for leaving the app. "
                f"New score: {profile.discipline_points}",
            )
        except Exception as e:
            logger.warning("Focus penalty notification failed: %s", e)

    async def wait_idle(self) -> None:
        """Wait for any pending grace timer and in-flight penalty to finish."""
        pending = [t for t in (self._timer, *self._penalties) if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
