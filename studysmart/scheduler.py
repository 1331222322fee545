"""Time-blocking scheduler for StudySmart.

Turns the task list into today's agenda: pending tasks are ranked, then
packed back to back from the configured start time until the daily study
budget runs out. Whatever does not fit is deferred.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from studysmart.models import (
    PRIORITY_RANK,
    PlanSummary,
    ScheduledTask,
    StudyPlan,
    StudyPlanConfig,
    Task,
    parse_clock,
)


# ── Constants ─────────────────────────────────────────────────

BREAK_MINUTES = 5


# ── Ordering ──────────────────────────────────────────────────


def task_sort_key(task: Task) -> tuple[bool, bool, int, datetime]:
    """Pinned first, then daily chores, then priority, then earliest due."""
    return (
        not task.is_today,
        not task.is_daily,
        -PRIORITY_RANK.get(task.priority, 0),
        task.due_date,
    )


def rank_tasks(tasks: list[Task]) -> list[Task]:
    """Pending tasks in scheduling order. sorted() is stable, so ties keep input order."""
    return sorted((t for t in tasks if not t.completed), key=task_sort_key)


# ── Schedule Generation ──────────────────────────────────────


def generate_schedule(
    tasks: list[Task],
    config: StudyPlanConfig,
    day: date | None = None,
) -> StudyPlan:
    """Generate today's plan using greedy allocation.

    - Keep pending tasks, sort by task_sort_key
    - Admit a task while its duration still fits in the daily budget
    - Leave a 5-min break after every admitted task (counted in the budget)
    - Overflow goes to upcoming_tasks
    """
    if day is None:
        day = date.today()

    max_minutes = config.max_daily_hours * 60
    hour, minute = parse_clock(config.start_time)
    clock = datetime.combine(day, time(hour, minute))
    current_minutes = 0

    today_schedule: list[ScheduledTask] = []
    upcoming: list[Task] = []

    for task in rank_tasks(tasks):
        duration = task.estimated_time
        if current_minutes + duration <= max_minutes:
            end = clock + timedelta(minutes=duration)
            today_schedule.append(ScheduledTask(task=task, start_time=clock, end_time=end))
            clock = end + timedelta(minutes=BREAK_MINUTES)
            current_minutes += duration + BREAK_MINUTES
        else:
            upcoming.append(task)

    return StudyPlan(
        today_schedule=today_schedule,
        upcoming_tasks=upcoming,
        summary=PlanSummary(
            total_study_minutes=current_minutes,
            tasks_deferred=len(upcoming),
        ),
    )


# ── Markdown Rendering ────────────────────────────────────────


def _format_duration(minutes: int) -> str:
    if minutes >= 60:
        h, m = divmod(minutes, 60)
        return f"{h}h" if m == 0 else f"{h}h{m:02d}m"
    return f"{minutes}m"


def plan_to_markdown(plan: StudyPlan, day: date | None = None) -> str:
    """Render a StudyPlan as a Markdown agenda."""
    heading = f"# Study plan — {day.isoformat()}" if day else "# Study plan"
    lines = [heading, ""]

    lines.append("## Today")
    if plan.today_schedule:
        for s in plan.today_schedule:
            start = s.start_time.strftime("%H:%M")
            end = s.end_time.strftime("%H:%M")
            flags = ""
            if s.task.is_today:
                flags += " \U0001f4cc"
            if s.task.is_daily:
                flags += " (daily)"
            lines.append(
                f"- {start}–{end} {s.task.title} "
                f"{_format_duration(s.task.estimated_time)} [{s.task.priority}]{flags}"
            )
    else:
        lines.append("- (nothing scheduled)")
    lines.append("")

    if plan.upcoming_tasks:
        lines.append("## Upcoming / Deferred")
        for t in plan.upcoming_tasks:
            lines.append(
                f"- {t.title} {_format_duration(t.estimated_time)} "
                f"(due {t.due_date.strftime('%Y-%m-%d')})"
            )
        lines.append("")

    summary = plan.summary
    lines.append(
        f"_Total: {_format_duration(summary.total_study_minutes)} incl. breaks; "
        f"{summary.tasks_deferred} deferred._"
    )
    return "\n".join(lines) + "\n"
