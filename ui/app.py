"""StudySmart local web UI and JSON API.

Run with: uvicorn ui.app:app --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse

from studysmart import LogNotifier, StorageError, open_session, plan_to_markdown
from studysmart.session import AppSession
from studysmart.settings import load_settings

logger = logging.getLogger("studysmart.ui")


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


# ── App & session ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = load_settings()
    session = open_session(settings, notifier=LogNotifier())
    evaluation = await session.startup()
    logger.info("Daily evaluation: %s", evaluation)
    app.state.session = session
    try:
        yield
    finally:
        await session.shutdown()


app = FastAPI(title="StudySmart UI", version="0.1.0", lifespan=lifespan)


def get_session(request: Request) -> AppSession:
    return request.app.state.session


def _task_id(task_id: str) -> int:
    try:
        return int(task_id)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")


def _storage_failure(e: StorageError) -> HTTPException:
    logger.warning("Storage failure: %s", e)
    return HTTPException(status_code=503, detail="Storage unavailable, try again")


# ── Pages ─────────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
async def index(session: AppSession = Depends(get_session)) -> HTMLResponse:
    profile = session.profile
    plan = await session.plan()
    plan_md = plan_to_markdown(plan, session.settings.today())
    logs = await session.discipline_logs()
    progress = await session.today_progress()

    log_rows = []
    for e in logs[:10]:
        sign = "+" if e.change > 0 else ""
        log_rows.append(
            f"<li><span class='muted'>{e.date.strftime('%Y-%m-%d')}</span> "
            f"<b>{sign}{e.change}</b> {_escape(e.reason)}</li>"
        )
    log_html = "".join(log_rows) or "<li class='muted'>(no history yet)</li>"

    focus = "ON" if profile.is_focus_mode_active else "off"
    lock = " (locked)" if profile.is_locked else ""
    score_class = "danger" if profile.is_locked else ""

    html = f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>StudySmart</title>
  <style>
    body {{ font-family: system-ui, sans-serif; max-width: 760px; margin: 2rem auto; }}
    .score {{ font-size: 3rem; font-weight: bold; }}
    .danger {{ color: #c62828; }}
    .muted {{ color: #777; }}
    pre {{ background: #f5f5f5; padding: 1rem; white-space: pre-wrap; }}
  </style>
</head>
<body>
  <h1>StudySmart</h1>
  <section>
    <div>Discipline Score</div>
    <div class="score {score_class}">{profile.discipline_points}</div>
    <div>Focus mode: {focus}{lock}</div>
    <div>Today's progress: {round(progress * 100)}%</div>
  </section>
  <h2>Plan</h2>
  <pre>{_escape(plan_md)}</pre>
  <h2>Discipline history</h2>
  <ul>{log_html}</ul>
</body>
</html>"""
    return HTMLResponse(html)


@app.get("/raw/plan")
async def raw_plan(
    start_time: str | None = None,
    hours: str | None = None,
    session: AppSession = Depends(get_session),
) -> PlainTextResponse:
    plan = await session.plan(start_time, hours)
    return PlainTextResponse(plan_to_markdown(plan, session.settings.today()))


# ── Tasks ─────────────────────────────────────────────────────

@app.get("/api/tasks")
async def api_list_tasks(session: AppSession = Depends(get_session)) -> dict[str, Any]:
    """All tasks, with the derived overdue display state."""
    now = session.settings.now()
    tasks = []
    for t in await session.list_tasks():
        d = t.to_dict()
        d["displayStatus"] = t.display_status(now)
        tasks.append(d)
    return {"tasks": tasks}


@app.post("/api/tasks")
async def api_create_task(
    payload: dict[str, Any] = Body(...),
    session: AppSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        task, errors = await session.add_task(payload)
    except StorageError as e:
        raise _storage_failure(e)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return {"ok": True, "task": task.to_dict()}


@app.put("/api/tasks/{task_id}")
async def api_update_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    session: AppSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        updated, errors = await session.edit_task(_task_id(task_id), payload)
    except StorageError as e:
        raise _storage_failure(e)
    if updated is None:
        not_found = any("not found" in e for e in errors)
        raise HTTPException(status_code=404 if not_found else 400, detail="; ".join(errors))
    return {"ok": True, "task": updated.to_dict()}


@app.post("/api/tasks/{task_id}/toggle")
async def api_toggle_task(task_id: str, session: AppSession = Depends(get_session)) -> dict[str, Any]:
    """Flip completion."""
    try:
        task = await session.toggle_complete(_task_id(task_id))
    except StorageError as e:
        raise _storage_failure(e)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task": task.to_dict()}


@app.post("/api/tasks/{task_id}/today")
async def api_toggle_today(task_id: str, session: AppSession = Depends(get_session)) -> dict[str, Any]:
    """Pin to / unpin from today."""
    try:
        task = await session.toggle_today(_task_id(task_id))
    except StorageError as e:
        raise _storage_failure(e)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task": task.to_dict()}


@app.delete("/api/tasks/{task_id}")
async def api_delete_task(task_id: str, session: AppSession = Depends(get_session)) -> dict[str, Any]:
    try:
        deleted = await session.remove_task(_task_id(task_id))
    except StorageError as e:
        raise _storage_failure(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task_id": int(task_id)}


# ── Plan ──────────────────────────────────────────────────────

@app.get("/api/plan")
async def api_plan(
    start_time: str | None = None,
    hours: str | None = None,
    session: AppSession = Depends(get_session),
) -> dict[str, Any]:
    """Today's schedule. Bad input falls back to the defaults."""
    plan = await session.plan(start_time, hours)
    return plan.to_dict()


# ── Discipline & focus ────────────────────────────────────────

@app.get("/api/profile")
async def api_profile(session: AppSession = Depends(get_session)) -> dict[str, Any]:
    d = session.profile.to_dict()
    d["focusMonitor"] = session.monitor.state
    return d


@app.post("/api/evaluate")
async def api_evaluate(session: AppSession = Depends(get_session)) -> dict[str, Any]:
    """Run the daily sweep (no-op if it already ran today)."""
    return await session.evaluate_daily_progress()


@app.post("/api/focus")
async def api_focus(
    payload: dict[str, Any] = Body(...),
    session: AppSession = Depends(get_session),
) -> dict[str, Any]:
    """Toggle focus mode. Refusals come back with ok=false and a reason."""
    if "active" not in payload:
        raise HTTPException(status_code=400, detail="Missing required field: active")
    active = payload["active"]
    if not isinstance(active, bool):
        raise HTTPException(status_code=400, detail="active must be true or false")
    result = await session.set_focus_mode(active)
    result["profile"] = session.profile.to_dict()
    return result


@app.post("/api/app-state")
async def api_app_state(
    payload: dict[str, Any] = Body(...),
    session: AppSession = Depends(get_session),
) -> dict[str, Any]:
    """Report a foreground/background transition from the client."""
    state = str(payload.get("state", ""))
    try:
        session.app_state.emit(state)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "focusMonitor": session.monitor.state}


@app.get("/api/discipline-logs")
async def api_discipline_logs(session: AppSession = Depends(get_session)) -> dict[str, Any]:
    logs = await session.discipline_logs()
    return {"count": len(logs), "logs": [e.to_dict() for e in logs]}


@app.get("/api/notifications")
def api_notifications(session: AppSession = Depends(get_session)) -> dict[str, Any]:
    """Pending notifications since the last poll."""
    notifier = session.notifier
    items = notifier.drain() if isinstance(notifier, LogNotifier) else []
    return {"notifications": items}


def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
