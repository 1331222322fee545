#!/usr/bin/env python3
"""StudySmart TUI — interactive terminal planner powered by Textual.

Terminal focus reporting drives focus mode: switching away from the
terminal counts as leaving the app.
"""

from __future__ import annotations

import logging
from datetime import datetime

from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Footer, Header, Input, Markdown, Static

from studysmart import StorageError, open_session, plan_to_markdown
from studysmart.focus import APP_ACTIVE, APP_BACKGROUND
from studysmart.models import PRIORITIES
from studysmart.settings import load_settings

logger = logging.getLogger("studysmart.cli")


class ToastNotifier:
    """Notifier backed by Textual toasts. Always available in a terminal."""

    def __init__(self, app: App) -> None:
        self.app = app

    async def request_permission(self) -> bool:
        return True

    async def schedule_notification(self, title: str, body: str) -> None:
        self.app.notify(body, title=title, severity="warning", timeout=8)


def parse_quick_add(text: str, now: datetime | None = None) -> dict:
    """Parse 'title; due; priority; minutes' into task input.

    due is 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM' (defaults to end of today),
    priority defaults to medium, minutes to 30. A leading '!' pins the task
    to today and a leading '@' marks it daily. *now* is the user's local
    wall-clock time.
    """
    parts = [p.strip() for p in text.split(";")]
    title = parts[0] if parts else ""
    is_today = is_daily = False
    while title[:1] in ("!", "@"):
        if title[0] == "!":
            is_today = True
        else:
            is_daily = True
        title = title[1:].strip()

    if now is None:
        now = datetime.now()
    due = now.replace(hour=23, minute=59, second=0, microsecond=0)
    if len(parts) > 1 and parts[1]:
        raw = parts[1]
        due = datetime.fromisoformat(raw if " " in raw or "T" in raw else f"{raw}T23:59")

    priority = parts[2].lower() if len(parts) > 2 and parts[2] else "medium"
    minutes = 30
    if len(parts) > 3 and parts[3]:
        minutes = int(parts[3].rstrip("m"))

    return {
        "title": title,
        "dueDate": due.isoformat(),
        "priority": priority,
        "estimatedTime": minutes,
        "isToday": is_today,
        "isDaily": is_daily,
    }


class StudySmartApp(App):
    CSS = """
    #main { height: 1fr; }
    #tasks { width: 3fr; }
    #side { width: 2fr; padding: 0 1; }
    #score { height: auto; padding: 1; border: round $primary; }
    #score.locked { border: round $error; }
    #plan { height: 1fr; }
    #add { dock: bottom; }
    """

    TITLE = "StudySmart"
    BINDINGS = [
        Binding("space", "toggle_complete", "Done/undo"),
        Binding("t", "toggle_today", "Pin today"),
        Binding("d", "delete_task", "Delete"),
        Binding("f", "toggle_focus", "Focus mode"),
        Binding("r", "refresh", "Refresh"),
        Binding("a", "focus_add", "Add task"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.session = open_session(load_settings(), notifier=ToastNotifier(self))

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main"):
            yield DataTable(id="tasks", cursor_type="row")
            with Vertical(id="side"):
                yield Static(id="score")
                yield Markdown(id="plan")
        yield Input(placeholder="Add: [!@]title; YYYY-MM-DD [HH:MM]; low|medium|high; minutes", id="add")
        yield Footer()

    async def on_mount(self) -> None:
        table = self.query_one("#tasks", DataTable)
        table.add_columns("ID", "Title", "Due", "Priority", "Est", "Status", "Today", "Daily")
        result = await self.session.startup()
        if result.get("penalty"):
            self.notify(
                f"Missed {len(result['missed'])} pinned task(s): -{result['penalty']} points",
                title="Daily review",
                severity="error",
            )
        await self.reload()
        self.set_interval(1.0, self._render_score)

    async def on_unmount(self) -> None:
        await self.session.shutdown()

    # ── Lifecycle → focus monitor ─────────────────────────────

    def on_app_blur(self, event: events.AppBlur) -> None:
        self.session.app_state.emit(APP_BACKGROUND)

    def on_app_focus(self, event: events.AppFocus) -> None:
        self.session.app_state.emit(APP_ACTIVE)

    # ── Rendering ─────────────────────────────────────────────

    async def reload(self) -> None:
        tasks = await self.session.list_tasks()
        now = self.session.settings.now()
        table = self.query_one("#tasks", DataTable)
        table.clear()
        for t in tasks:
            table.add_row(
                str(t.id),
                t.title,
                t.due_date.strftime("%m-%d %H:%M"),
                t.priority,
                f"{t.estimated_time}m",
                t.display_status(now),
                "📌" if t.is_today else "",
                "↻" if t.is_daily else "",
                key=str(t.id),
            )

        plan = self.session.generate_schedule(tasks, self.session.settings.plan_config())
        self.query_one("#plan", Markdown).update(plan_to_markdown(plan, self.session.settings.today()))
        self._render_score()

    def _render_score(self) -> None:
        profile = self.session.profile
        focus = "ON" if profile.is_focus_mode_active else "off"
        lock = "  🔒 locked" if profile.is_locked else ""
        score = self.query_one("#score", Static)
        score.update(
            f"Discipline score: [b]{profile.discipline_points}[/b]\n"
            f"Focus mode: {focus}{lock}\n"
            f"Monitor: {self.session.monitor.state}"
        )
        score.set_class(profile.is_locked, "locked")

    def _selected_id(self) -> int | None:
        table = self.query_one("#tasks", DataTable)
        if table.row_count == 0:
            return None
        row = table.get_row_at(table.cursor_row)
        return int(row[0])

    # ── Actions ───────────────────────────────────────────────

    def _storage_failed(self, e: StorageError) -> None:
        logger.warning("Storage failure: %s", e)
        self.notify(f"Changes were not saved: {e}", title="Storage unavailable", severity="error")

    async def _change_selected(self, change) -> None:
        task_id = self._selected_id()
        if task_id is None:
            return
        try:
            await change(task_id)
        except StorageError as e:
            self._storage_failed(e)
        await self.reload()

    async def action_toggle_complete(self) -> None:
        await self._change_selected(self.session.toggle_complete)

    async def action_toggle_today(self) -> None:
        await self._change_selected(self.session.toggle_today)

    async def action_delete_task(self) -> None:
        await self._change_selected(self.session.remove_task)

    async def action_toggle_focus(self) -> None:
        want = not self.session.profile.is_focus_mode_active
        result = await self.session.set_focus_mode(want)
        if result["ok"]:
            if want:
                self.notify("Stay in the app to avoid penalties!", title="Focus Mode Activated")
            else:
                self.notify("Good job staying focused.", title="Focus Mode Deactivated")
        else:
            self.notify(result.get("message", result["reason"]), title="Focus mode", severity="warning")
        self._render_score()

    async def action_refresh(self) -> None:
        await self.session.evaluate_daily_progress()
        await self.reload()

    def action_focus_add(self) -> None:
        self.query_one("#add", Input).focus()

    @on(Input.Submitted, "#add")
    async def _on_add(self, event: Input.Submitted) -> None:
        try:
            data = parse_quick_add(event.value, self.session.settings.now())
        except ValueError as e:
            self.notify(str(e), title="Could not parse task", severity="error")
            return
        if data["priority"] not in PRIORITIES:
            self.notify(f"Priority must be one of {', '.join(PRIORITIES)}", severity="error")
            return
        try:
            _task, errors = await self.session.add_task(data)
        except StorageError as e:
            self._storage_failed(e)
            return
        if errors:
            self.notify("; ".join(errors), title="Invalid task", severity="error")
            return
        event.input.value = ""
        await self.reload()


def main() -> None:
    root = load_settings().root
    root.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(root / "studysmart.log"),
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    StudySmartApp().run()


if __name__ == "__main__":
    main()
