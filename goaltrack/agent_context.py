"""Agent context generation, the bridge between progress state and external agents.

Writes planner/agent_context.json: a snapshot of active habits (streaks,
today's status, pending milestones), open projects (progress, next goal),
open assignments (due dates, overdue flags), the points balance and a
handful of rule-based suggestions.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any

from goaltrack.fileio import write_json_atomic
from goaltrack.models import Assignment, Habit, Project
from goaltrack.pauses import (
    JsonKeyValueStore,
    KeyValueStore,
    is_paused_today,
    needs_attention,
    prune_expired_pauses,
)
from goaltrack.points import load_ledger
from goaltrack.store import active_habits, incomplete_assignments, incomplete_projects, load_progress
from goaltrack.workspace import agent_context_path, now_local, workspace_root


def habit_snapshot(habit: Habit, pauses: KeyValueStore, today: date) -> dict[str, Any]:
    return {
        "id": habit.id,
        "title": habit.title,
        "target": habit.formatted_target,
        "completedToday": habit.is_completed_today(today),
        "pausedToday": is_paused_today(pauses, habit.id, today),
        "currentStreak": habit.current_streak(today),
        "bestStreak": habit.best_streak,
        "completedDays": habit.completed_days_count,
        "daysRemaining": habit.days_remaining,
        "completionRate": round(habit.completion_rate(today), 1),
        "milestonePending": habit.just_hit_milestone,
    }


def project_snapshot(project: Project, now: datetime) -> dict[str, Any]:
    nxt = project.next_goal
    return {
        "id": project.id,
        "title": project.title,
        "progressPct": round(project.progress_percentage, 1),
        "goals": len(project.goals),
        "completedGoals": project.completed_goals_count,
        "nextGoal": nxt.title if nxt else None,
        "nextGoalDate": nxt.target_date.date().isoformat() if nxt else None,
        "deadline": project.deadline.date().isoformat(),
        "overdue": project.is_overdue(now),
    }


def assignment_snapshot(assignment: Assignment, now: datetime) -> dict[str, Any]:
    return {
        "id": assignment.id,
        "title": assignment.title,
        "dueDate": assignment.due_date.isoformat(timespec="minutes"),
        "priority": assignment.priority.value,
        "subject": assignment.subject,
        "overdue": assignment.is_overdue(now),
        "dueToday": assignment.is_due_today(now.date()),
    }


def get_suggestions(
    habits: list[Habit],
    projects: list[Project],
    pauses: KeyValueStore,
    now: datetime,
    assignments: list[Assignment] | None = None,
) -> list[dict[str, str]]:
    """Rule-based nudges.

    Rules:
    - an open habit carrying a streak of 3+ days is at risk today
    - a reached milestone that was never celebrated needs a decision
    - an overdue goal should be rescheduled or completed
    - a project with no goals cannot progress
    - overdue assignments come first, then the ones due today
    """
    today = now.date()
    suggestions = []

    for h in habits:
        streak = h.current_streak(today)
        if streak >= 3 and needs_attention(h, pauses, today):
            suggestions.append({
                "type": "streak_at_risk",
                "message": f"'{h.title}' has a {streak}-day streak. Complete it today to keep it going.",
                "priority": "high",
            })
        if h.just_hit_milestone:
            suggestions.append({
                "type": "milestone",
                "message": f"'{h.title}' reached {h.max_completion_days} days. Celebrate and decide whether to continue.",
                "priority": "high",
            })

    for p in projects:
        if not p.goals:
            suggestions.append({
                "type": "empty_project",
                "message": f"'{p.title}' has no goals yet. Break it into milestones.",
                "priority": "medium",
            })
            continue
        late = [g for g in p.goals if g.is_overdue(now)]
        if late:
            suggestions.append({
                "type": "overdue_goal",
                "message": f"'{p.title}' has {len(late)} overdue goal(s), starting with '{late[0].title}'.",
                "priority": "high" if p.is_overdue(now) else "medium",
            })

    open_assignments = [a for a in assignments or [] if not a.is_completed]
    late = [a for a in open_assignments if a.is_overdue(now)]
    if late:
        suggestions.append({
            "type": "overdue_assignment",
            "message": f"{len(late)} assignment(s) overdue, starting with '{late[0].title}'.",
            "priority": "high",
        })
    due_today = [a for a in open_assignments if a.is_due_today(today) and not a.is_overdue(now)]
    if due_today:
        suggestions.append({
            "type": "assignment_due_today",
            "message": f"'{due_today[0].title}' is due today.",
            "priority": "medium",
        })

    return suggestions


def generate_agent_context(root: Path | None = None) -> dict[str, Any]:
    """Build and write agent_context.json for the workspace."""
    if root is None:
        root = workspace_root()

    now = now_local(root)
    today = now.date()
    progress = load_progress(root)
    ledger = load_ledger(root)
    pauses = JsonKeyValueStore.for_workspace(root)
    prune_expired_pauses(pauses, today)

    habits = active_habits(progress)
    projects = incomplete_projects(progress)
    assignments = incomplete_assignments(progress)

    context = {
        "generatedAt": now.isoformat(timespec="seconds"),
        "habits": [habit_snapshot(h, pauses, today) for h in habits],
        "projects": [project_snapshot(p, now) for p in projects],
        "assignments": [assignment_snapshot(a, now) for a in assignments],
        "points": {
            "remaining": ledger.remaining,
            "earnedToday": ledger.points_for_day(today),
        },
        "suggestions": get_suggestions(habits, projects, pauses, now, assignments),
    }

    write_json_atomic(agent_context_path(root), context)
    return context
