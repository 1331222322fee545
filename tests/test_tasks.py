"""Tests for studysmart/tasks.py — validation, lifecycle, daily reset."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from studysmart.tasks import (
    apply_daily_reset,
    apply_updates,
    missed_tasks,
    new_task,
    pending_tasks,
    set_completed,
    today_progress,
    toggle_completed,
    toggle_today,
    validate_task,
)

from conftest import TODAY, make_task


def _input(**overrides):
    data = {"title": "Essay", "dueDate": "2026-10-20T17:00:00", "priority": "high", "estimatedTime": 90}
    data.update(overrides)
    return data


def test_validate_task_valid():
    assert validate_task(_input()) == []


def test_validate_task_collects_errors():
    errors = validate_task({"title": "  ", "priority": "urgent", "estimatedTime": 0})
    assert "Missing required field: title" in errors
    assert "Missing required field: dueDate" in errors
    assert "Invalid priority: urgent" in errors
    assert any("estimatedTime" in e for e in errors)


def test_validate_task_rejects_bad_due_date_and_bool_minutes():
    errors = validate_task(_input(dueDate="next tuesday", estimatedTime=True))
    assert any(e.startswith("Invalid dueDate") for e in errors)
    assert any("estimatedTime" in e for e in errors)


def test_new_task_always_pending():
    task, errors = new_task(_input(status="completed", completedAt="2026-10-19T08:00:00", id=99))
    assert errors == []
    assert task.id == 0
    assert task.status == "pending"
    assert task.completed_at is None
    assert task.due_date == datetime(2026, 10, 20, 17, 0)
    assert task.priority == "high"


def test_new_task_invalid_returns_errors():
    _task, errors = new_task({"title": "x"})
    assert errors


def test_apply_updates_keeps_completion_state():
    task = make_task(status="completed", completed_at=datetime(2026, 10, 19, 8, 0))
    updated, errors = apply_updates(task, {"title": "Renamed", "status": "pending", "estimatedTime": 45})
    assert errors == []
    assert updated.title == "Renamed"
    assert updated.estimated_time == 45
    assert updated.status == "completed"
    assert updated.id == task.id


def test_apply_updates_rejects_invalid():
    updated, errors = apply_updates(make_task(), {"priority": "whenever"})
    assert updated is None
    assert errors == ["Invalid priority: whenever"]


def test_set_completed_keeps_fields_in_step():
    task = make_task()
    now = datetime(2026, 10, 19, 10, 0)
    set_completed(task, True, now)
    assert task.completed and task.completed_at == now
    set_completed(task, False, now)
    assert task.status == "pending" and task.completed_at is None


def test_toggles():
    task = make_task()
    toggle_completed(task, datetime(2026, 10, 19, 10, 0))
    assert task.completed
    toggle_completed(task, datetime(2026, 10, 19, 10, 5))
    assert not task.completed
    toggle_today(task)
    assert task.is_today
    toggle_today(task)
    assert not task.is_today


def test_daily_reset_for_chore_done_yesterday():
    task = make_task(is_daily=True, status="completed", completed_at=datetime(2026, 10, 18, 21, 0))
    assert apply_daily_reset(task, TODAY)
    assert task.status == "pending"
    assert task.completed_at is None
    assert task.is_today


def test_daily_reset_leaves_today_and_non_daily_alone():
    done_today = make_task(is_daily=True, status="completed", completed_at=datetime(2026, 10, 19, 7, 0))
    one_off = make_task(status="completed", completed_at=datetime(2026, 10, 1, 7, 0))
    pending_chore = make_task(is_daily=True)
    assert not apply_daily_reset(done_today, TODAY)
    assert not apply_daily_reset(one_off, TODAY)
    assert not apply_daily_reset(pending_chore, TODAY)
    assert done_today.completed and one_off.completed


def test_missed_tasks_needs_pin_and_past_due_day():
    yesterday = datetime(2026, 10, 18, 12, 0)
    missed = make_task(id=1, is_today=True, due_date=yesterday)
    unpinned = make_task(id=2, due_date=yesterday)
    due_today = make_task(id=3, is_today=True)
    done = make_task(id=4, is_today=True, due_date=yesterday, status="completed")
    result = missed_tasks([missed, unpinned, due_today, done], date(2026, 10, 19))
    assert [t.id for t in result] == [1]


def test_pending_tasks_and_progress():
    tasks = [
        make_task(id=1, is_today=True, status="completed"),
        make_task(id=2, is_today=True),
        make_task(id=3),
    ]
    assert [t.id for t in pending_tasks(tasks)] == [2, 3]
    assert today_progress(tasks) == 0.5
    assert today_progress([make_task()]) == 0.0


def test_new_task_and_updates_convert_offsets_to_zone():
    tokyo = ZoneInfo("Asia/Tokyo")
    task, errors = new_task(_input(dueDate="2026-10-19T15:00:00Z"), tokyo)
    assert errors == []
    assert task.due_date == datetime(2026, 10, 20, 0, 0)

    updated, errors = apply_updates(task, {"dueDate": "2026-10-20T09:00:00+09:00"}, tokyo)
    assert errors == []
    assert updated.due_date == datetime(2026, 10, 20, 9, 0)
