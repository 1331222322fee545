"""Tests for studysmart/discipline.py — penalties, clamping, focus lock, daily sweep."""

import asyncio
from datetime import date, datetime

from studysmart.discipline import DisciplineEngine, apply_score_delta, clamp_points, compute_penalty
from studysmart.models import UserProfile

from conftest import TODAY, MemoryProfileStore, MemoryTaskStore, make_task


def _engine(tasks=None, points=100, focus=False):
    store = MemoryTaskStore(tasks)
    profiles = MemoryProfileStore()
    profiles.profile = UserProfile(discipline_points=points, is_focus_mode_active=focus)
    engine = DisciplineEngine(store, profiles, today=lambda: TODAY)
    asyncio.run(engine.load_profile())
    return engine, store, profiles


def test_compute_penalty_by_priority():
    assert compute_penalty(make_task(priority="high")) == 10
    assert compute_penalty(make_task(priority="medium")) == 5
    assert compute_penalty(make_task(priority="low")) == 2


def test_compute_penalty_daily_floor():
    assert compute_penalty(make_task(priority="low", is_daily=True)) == 5
    assert compute_penalty(make_task(priority="high", is_daily=True)) == 10


def test_clamp_points():
    assert clamp_points(-20) == 0
    assert clamp_points(130) == 100
    assert clamp_points(64) == 64


def test_score_delta_forces_focus_below_threshold():
    profile = apply_score_delta(UserProfile(discipline_points=52), -5)
    assert profile.discipline_points == 47
    assert profile.is_focus_mode_active


def test_score_delta_never_clears_focus():
    profile = apply_score_delta(UserProfile(discipline_points=45, is_focus_mode_active=True), 20)
    assert profile.discipline_points == 65
    assert profile.is_focus_mode_active


def test_update_discipline_score_saves_once():
    engine, _store, profiles = _engine()
    profile = asyncio.run(engine.update_discipline_score(-30))
    assert profile.discipline_points == 70
    assert profiles.saves == 1
    assert profiles.profile.discipline_points == 70


def test_update_discipline_score_clamps_at_bounds():
    engine, _store, _profiles = _engine(points=3)
    assert asyncio.run(engine.update_discipline_score(-10)).discipline_points == 0
    assert asyncio.run(engine.update_discipline_score(500)).discipline_points == 100


def test_failed_save_keeps_change_in_memory():
    engine, _store, profiles = _engine()
    profiles.fail_saves = True
    profile = asyncio.run(engine.update_discipline_score(-10))
    assert profile.discipline_points == 90
    assert engine.profile.discipline_points == 90
    assert engine.dirty

    profiles.fail_saves = False
    asyncio.run(engine.update_discipline_score(-1))
    assert not engine.dirty
    assert profiles.profile.discipline_points == 89


def test_evaluate_penalizes_missed_daily_low_task():
    overdue = make_task(
        id=4, title="Vocab", priority="low", is_today=True, is_daily=True,
        due_date=datetime(2026, 10, 17, 9, 0),
    )
    engine, store, profiles = _engine([overdue])
    result = asyncio.run(engine.evaluate_daily_progress())

    assert result["ok"]
    assert result["missed"] == [4]
    assert result["penalty"] == 5
    assert result["points"] == 95
    assert store.logs == [(-5, "Missed overdue task: Vocab", 4)]
    assert profiles.watermark == "2026-10-19"


def test_evaluate_sums_penalties_and_ignores_unpinned():
    tasks = [
        make_task(id=1, priority="high", is_today=True, due_date=datetime(2026, 10, 18, 9, 0)),
        make_task(id=2, priority="medium", is_today=True, due_date=datetime(2026, 10, 10, 9, 0)),
        make_task(id=3, priority="high", due_date=datetime(2026, 10, 1, 9, 0)),
        make_task(id=4, priority="high", is_today=True),
    ]
    engine, store, _profiles = _engine(tasks)
    result = asyncio.run(engine.evaluate_daily_progress())
    assert result["missed"] == [1, 2]
    assert result["penalty"] == 15
    assert engine.profile.discipline_points == 85
    assert len(store.logs) == 2


def test_evaluate_runs_once_per_day():
    overdue = make_task(is_today=True, due_date=datetime(2026, 10, 18, 9, 0))
    engine, store, _profiles = _engine([overdue])
    asyncio.run(engine.evaluate_daily_progress())
    second = asyncio.run(engine.evaluate_daily_progress())

    assert second == {"ok": True, "day": "2026-10-19", "already_evaluated": True}
    assert engine.profile.discipline_points == 95
    assert len(store.logs) == 1


def test_evaluate_runs_again_next_day():
    overdue = make_task(is_today=True, due_date=datetime(2026, 10, 18, 9, 0))
    engine, _store, profiles = _engine([overdue])
    profiles.watermark = "2026-10-18"
    result = asyncio.run(engine.evaluate_daily_progress())
    assert result["penalty"] == 5


def test_evaluate_with_nothing_missed_still_advances_watermark():
    engine, _store, profiles = _engine([make_task()])
    result = asyncio.run(engine.evaluate_daily_progress())
    assert result["penalty"] == 0
    assert profiles.saves == 0
    assert profiles.watermark == "2026-10-19"


def test_evaluate_storage_failure_leaves_watermark():
    engine, store, profiles = _engine([make_task(is_today=True, due_date=datetime(2026, 10, 1))])
    store.fail_reads = True
    result = asyncio.run(engine.evaluate_daily_progress())
    assert result == {"ok": False, "reason": "storage-unavailable", "day": "2026-10-19"}
    assert profiles.watermark is None
    assert engine.profile.discipline_points == 100


def test_evaluate_penalty_can_force_focus_on():
    overdue = make_task(priority="high", is_today=True, due_date=datetime(2026, 10, 18))
    engine, _store, _profiles = _engine([overdue], points=55)
    asyncio.run(engine.evaluate_daily_progress())
    assert engine.profile.discipline_points == 45
    assert engine.profile.is_focus_mode_active


def test_set_focus_mode_refuses_disable_when_locked():
    engine, _store, _profiles = _engine([make_task()], points=40, focus=True)
    result = asyncio.run(engine.set_focus_mode(False))
    assert result["ok"] is False
    assert result["reason"] == "locked"
    assert engine.profile.is_focus_mode_active


def test_set_focus_mode_disable_at_threshold():
    engine, _store, profiles = _engine([make_task()], points=50, focus=True)
    result = asyncio.run(engine.set_focus_mode(False))
    assert result == {"ok": True, "active": False, "saved": True}
    assert not profiles.profile.is_focus_mode_active


def test_set_focus_mode_refuses_enable_without_pending():
    engine, _store, _profiles = _engine([make_task(status="completed")])
    result = asyncio.run(engine.set_focus_mode(True))
    assert result["reason"] == "no-pending-tasks"
    assert not engine.profile.is_focus_mode_active


def test_set_focus_mode_enable():
    engine, _store, _profiles = _engine([make_task()])
    result = asyncio.run(engine.set_focus_mode(True))
    assert result["ok"] and result["active"]
    assert engine.profile.is_focus_mode_active


def test_set_focus_mode_enable_storage_unavailable():
    engine, store, _profiles = _engine([make_task()])
    store.fail_reads = True
    result = asyncio.run(engine.set_focus_mode(True))
    assert result == {"ok": False, "reason": "storage-unavailable"}


def test_engine_defaults_to_today():
    engine = DisciplineEngine(MemoryTaskStore(), MemoryProfileStore())
    result = asyncio.run(engine.evaluate_daily_progress())
    assert result["day"] == date.today().isoformat()


def test_flush_writes_pending_profile_change():
    engine, _store, profiles = _engine()
    assert asyncio.run(engine.flush()) is True
    assert profiles.saves == 0

    profiles.fail_saves = True
    asyncio.run(engine.update_discipline_score(-20))
    assert asyncio.run(engine.flush()) is False
    assert engine.dirty

    profiles.fail_saves = False
    assert asyncio.run(engine.flush()) is True
    assert profiles.profile.discipline_points == 80
    assert not engine.dirty
