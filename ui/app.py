"""goaltrack HTTP API: JSON endpoints over the workspace store."""

from __future__ import annotations

import logging
import os
import secrets
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from goaltrack import (
    JsonKeyValueStore,
    ProgressFile,
    ToolContext,
    TOOLS,
    add_goal,
    award_assignment,
    award_goal,
    award_habit,
    call_tool,
    create_assignment,
    create_habit,
    create_project,
    delete_assignment,
    delete_goal,
    delete_habit,
    delete_project,
    find_assignment,
    find_goal,
    find_habit,
    find_project,
    generate_agent_context,
    is_paused_today,
    load_ledger,
    load_progress,
    now_local,
    pause_for_today,
    run_hooks,
    save_ledger,
    save_progress,
    unpause_today,
    workspace_root,
)
from goaltrack.agent_context import assignment_snapshot, habit_snapshot, project_snapshot
from goaltrack.tools import fire_milestone

logging.basicConfig(
    level=os.environ.get("GOALTRACK_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="goaltrack", version="0.1.0")

security = HTTPBasic(auto_error=False)


# ── Auth ──────────────────────────────────────────────────────


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("GOALTRACK_USERNAME", "")
    expected_password = os.environ.get("GOALTRACK_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Helpers ───────────────────────────────────────────────────


def _fire(hook_point: str, payload: dict[str, Any]) -> None:
    """Best-effort hook run; a broken hook never fails the request."""
    try:
        run_hooks(hook_point, payload, workspace_root())
    except Exception:
        logger.warning("Hooks for %s failed", hook_point, exc_info=True)


def _project_or_404(progress: ProgressFile, project_id: str):
    project = find_project(progress, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return project


def _habit_or_404(progress: ProgressFile, habit_id: str):
    habit = find_habit(progress, habit_id)
    if habit is None:
        raise HTTPException(status_code=404, detail=f"Habit not found: {habit_id}")
    return habit


def _project_view(project, now) -> dict[str, Any]:
    d = project.to_dict()
    d.update(project_snapshot(project, now))
    d["state"] = project.state
    return d


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


# ── Projects & goals ──────────────────────────────────────────


@app.get("/api/projects")
def api_list_projects(filter: str = "incomplete", username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    now = now_local(root)
    projects = sorted(progress.projects, key=lambda p: p.deadline)
    if filter != "all":
        projects = [p for p in projects if not p.is_completed]
    return {"projects": [_project_view(p, now) for p in projects]}


@app.post("/api/projects")
def api_create_project(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    project, errors = create_project(progress, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    save_progress(progress, root)
    return {"ok": True, "project": project.to_dict()}


@app.delete("/api/projects/{project_id}")
def api_delete_project(project_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    if not delete_project(progress, project_id):
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    save_progress(progress, root)
    return {"ok": True, "project_id": project_id}


@app.post("/api/projects/{project_id}/goals")
def api_add_goal(project_id: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    _project_or_404(progress, project_id)
    goal, errors = add_goal(progress, project_id, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    save_progress(progress, root)
    return {"ok": True, "goal": goal.to_dict()}


@app.post("/api/projects/{project_id}/toggle")
def api_toggle_project(project_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Explicit completion switch (the only way to finish a goal-less project)."""
    root = workspace_root()
    progress = load_progress(root)
    project = _project_or_404(progress, project_id)
    try:
        project.toggle_completion(now_local(root))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_progress(progress, root)
    if project.is_completed:
        _fire("on_project_complete", {"project": project.title, "project_id": project.id})
    return {"ok": True, "project": _project_view(project, now_local(root))}


@app.post("/api/projects/{project_id}/complete_next")
def api_complete_next_goal(project_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    project = _project_or_404(progress, project_id)
    goal = project.next_goal
    if goal is None:
        raise HTTPException(status_code=409, detail=f"Project has no open goals: {project_id}")
    return _toggle_goal(root, progress, project, goal)


@app.post("/api/goals/{goal_id}/toggle")
def api_toggle_goal(goal_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    project, goal = find_goal(progress, goal_id)
    if project is None or goal is None:
        raise HTTPException(status_code=404, detail=f"Goal not found: {goal_id}")
    return _toggle_goal(root, progress, project, goal)


def _toggle_goal(root, progress: ProgressFile, project, goal) -> dict[str, Any]:
    now = now_local(root)
    was_completed = project.is_completed
    goal.toggle_completion(project, now)

    points = 0
    if goal.is_completed:
        ledger = load_ledger(root)
        points = award_goal(ledger, goal, now)
        save_ledger(ledger, root)
    save_progress(progress, root)

    if goal.is_completed:
        _fire("on_goal_complete", {"project": project.title, "goal": goal.title, "goal_id": goal.id})
    if project.is_completed and not was_completed:
        _fire("on_project_complete", {"project": project.title, "project_id": project.id})
    return {"ok": True, "goal": goal.to_dict(), "project": _project_view(project, now), "points": points}


@app.delete("/api/goals/{goal_id}")
def api_delete_goal(goal_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    if not delete_goal(progress, goal_id, now_local(root)):
        raise HTTPException(status_code=404, detail=f"Goal not found: {goal_id}")
    save_progress(progress, root)
    return {"ok": True, "goal_id": goal_id}


# ── Habits ────────────────────────────────────────────────────


@app.get("/api/habits")
def api_list_habits(filter: str = "active", username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    pauses = JsonKeyValueStore.for_workspace(root)
    today = now_local(root).date()
    habits = sorted(progress.habits, key=lambda h: h.created_date)
    if filter == "completed-today":
        habits = [h for h in habits if h.is_completed_today(today)]
    elif filter != "all":
        habits = [h for h in habits if h.is_active]
    return {"habits": [habit_snapshot(h, pauses, today) for h in habits]}


@app.post("/api/habits")
def api_create_habit(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit, errors = create_habit(progress, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    save_progress(progress, root)
    return {"ok": True, "habit": habit.to_dict()}


@app.delete("/api/habits/{habit_id}")
def api_delete_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    if not delete_habit(progress, habit_id):
        raise HTTPException(status_code=404, detail=f"Habit not found: {habit_id}")
    save_progress(progress, root)
    return {"ok": True, "habit_id": habit_id}


@app.post("/api/habits/{habit_id}/complete")
def api_complete_habit(habit_id: str, payload: dict[str, Any] = Body(default={}), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Record today's value (defaults to the habit's target)."""
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    if habit.is_terminated:
        raise HTTPException(status_code=409, detail=f"Habit is terminated: {habit_id}")
    now = now_local(root)
    today = now.date()

    value = payload.get("value")
    if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise HTTPException(status_code=400, detail="value must be numeric")
    count_before = habit.completed_days_count
    try:
        habit.complete_today(value=value, today=today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ledger = load_ledger(root)
    points = award_habit(ledger, habit, today, now)
    save_ledger(ledger, root)
    save_progress(progress, root)

    if habit.is_completed_today(today):
        _fire("on_habit_complete", {"habit": habit.title, "habit_id": habit.id, "streak": habit.current_streak(today)})
    if habit.crossed_milestone(count_before):
        fire_milestone(_fire, habit)

    pauses = JsonKeyValueStore.for_workspace(root)
    return {"ok": True, "habit": habit_snapshot(habit, pauses, today), "points": points}


@app.post("/api/habits/{habit_id}/uncomplete")
def api_uncomplete_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    today = now_local(root).date()
    removed = habit.uncomplete_today(today)
    save_progress(progress, root)
    pauses = JsonKeyValueStore.for_workspace(root)
    return {"ok": True, "removed": removed, "habit": habit_snapshot(habit, pauses, today)}


@app.post("/api/habits/{habit_id}/terminate")
def api_terminate_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    habit.terminate(now_local(root))
    save_progress(progress, root)
    _fire("on_habit_terminated", {"habit": habit.title, "habit_id": habit.id})
    return {"ok": True, "habit": habit.to_dict()}


@app.post("/api/habits/{habit_id}/milestone_shown")
def api_milestone_shown(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    habit.mark_milestone_shown()
    save_progress(progress, root)
    return {"ok": True, "habit_id": habit_id, "milestoneShown": True}


@app.post("/api/habits/{habit_id}/pause")
def api_pause_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    pauses = JsonKeyValueStore.for_workspace(root)
    today = now_local(root).date()
    pause_for_today(pauses, habit.id, today)
    return {"ok": True, "habit_id": habit_id, "pausedToday": is_paused_today(pauses, habit.id, today)}


@app.delete("/api/habits/{habit_id}/pause")
def api_unpause_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    habit = _habit_or_404(progress, habit_id)
    pauses = JsonKeyValueStore.for_workspace(root)
    today = now_local(root).date()
    unpause_today(pauses, habit.id, today)
    return {"ok": True, "habit_id": habit_id, "pausedToday": is_paused_today(pauses, habit.id, today)}


# ── Assignments ───────────────────────────────────────────────


def _assignment_view(assignment, now) -> dict[str, Any]:
    d = assignment.to_dict()
    d.update(assignment_snapshot(assignment, now))
    return d


@app.get("/api/assignments")
def api_list_assignments(filter: str = "incomplete", username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    now = now_local(root)
    assignments = sorted(progress.assignments, key=lambda a: a.due_date)
    if filter == "overdue":
        assignments = [a for a in assignments if a.is_overdue(now)]
    elif filter == "today":
        assignments = [a for a in assignments if a.is_due_today(now.date())]
    elif filter != "all":
        assignments = [a for a in assignments if not a.is_completed]
    return {"assignments": [_assignment_view(a, now) for a in assignments]}


@app.post("/api/assignments")
def api_create_assignment(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    assignment, errors = create_assignment(progress, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    save_progress(progress, root)
    return {"ok": True, "assignment": assignment.to_dict()}


@app.delete("/api/assignments/{assignment_id}")
def api_delete_assignment(assignment_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    progress = load_progress(root)
    if not delete_assignment(progress, assignment_id):
        raise HTTPException(status_code=404, detail=f"Assignment not found: {assignment_id}")
    save_progress(progress, root)
    return {"ok": True, "assignment_id": assignment_id}


@app.post("/api/assignments/{assignment_id}/toggle")
def api_toggle_assignment(assignment_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Flip completion; the first completion pays a point."""
    root = workspace_root()
    progress = load_progress(root)
    assignment = find_assignment(progress, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail=f"Assignment not found: {assignment_id}")
    now = now_local(root)
    assignment.toggle_completion(now)

    points = 0
    if assignment.is_completed:
        ledger = load_ledger(root)
        points = award_assignment(ledger, assignment, now)
        save_ledger(ledger, root)
    save_progress(progress, root)

    if assignment.is_completed:
        _fire("on_assignment_complete", {
            "assignment": assignment.title, "assignment_id": assignment.id, "points": points,
        })
    return {"ok": True, "assignment": _assignment_view(assignment, now), "points": points}


# ── Points, agent context, tools ──────────────────────────────


@app.get("/api/points")
def api_points(username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    ledger = load_ledger(root)
    return {
        "remaining": ledger.remaining,
        "earned": ledger.total_earned,
        "spent": ledger.total_spent,
        "earnedToday": ledger.points_for_day(now_local(root).date()),
        "recent": [t.to_dict() for t in ledger.transactions[-20:][::-1]],
    }


@app.get("/api/agent_context")
def api_agent_context(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return generate_agent_context(workspace_root())


@app.get("/api/tools")
def api_list_tools(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return {"tools": [{"name": t.name, "description": t.description} for t in TOOLS.values()]}


@app.post("/api/tools/{name}")
def api_call_tool(name: str, payload: dict[str, Any] = Body(default={}), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Run an assistant tool against the workspace."""
    if name not in TOOLS:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    ctx = ToolContext.for_workspace(workspace_root())
    try:
        result = call_tool(ctx, name, payload)
    except TypeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "tool": name, "result": result, "calls": ctx.tracker.calls}
