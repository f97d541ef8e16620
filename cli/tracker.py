#!/usr/bin/env python3
"""goaltrack command line: progress operations by title, JSON on stdout.

Run from the repository root with ``python -m cli.tracker <command>``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

from goaltrack import (
    ToolContext,
    add_goal,
    award_goal,
    award_habit,
    call_tool,
    create_assignment,
    create_habit,
    default_max_completion_days,
    find_goal,
    generate_agent_context,
    load_ledger,
    match_by_title,
    unpause_today,
    workspace_root,
)
from goaltrack.agent_context import assignment_snapshot, habit_snapshot, project_snapshot
from goaltrack.tools import fire_milestone, parse_due_date


def _print_json(obj: Any) -> None:
    json.dump(obj, sys.stdout, ensure_ascii=False, indent=2, sort_keys=True, default=str)
    sys.stdout.write("\n")


def _die(message: str, *, code: int = 1) -> None:
    _print_json({"ok": False, "error": message})
    raise SystemExit(code)


def _context() -> ToolContext:
    root = workspace_root()
    if not root.exists():
        _die(f"Workspace not found: {root}. Set GOALTRACK_ROOT or create it first.")
    return ToolContext.for_workspace(root)


def _habit_by_title(ctx: ToolContext, title: str, include_terminated: bool = False):
    habits = ctx.progress.habits if include_terminated else [h for h in ctx.progress.habits if h.is_active]
    habit = match_by_title(title, habits)
    if habit is None:
        _die(f"No habit found matching '{title}'")
    return habit


def _tool(name: str, **arguments: Any) -> None:
    ctx = _context()
    _print_json({"ok": True, "result": call_tool(ctx, name, arguments)})


# ── Projects ──────────────────────────────────────────────────


def _cmd_list_projects(args: argparse.Namespace) -> None:
    ctx = _context()
    now = ctx.now()
    projects = sorted(ctx.progress.projects, key=lambda p: p.deadline)
    if not args.all:
        projects = [p for p in projects if not p.is_completed]
    _print_json({"ok": True, "projects": [project_snapshot(p, now) for p in projects]})


def _cmd_add_project(args: argparse.Namespace) -> None:
    _tool("createProject", title=args.title, deadline=args.deadline, goals=args.goals, subject=args.subject)


def _cmd_add_goal(args: argparse.Namespace) -> None:
    ctx = _context()
    project = match_by_title(args.project, ctx.progress.projects)
    if project is None:
        _die(f"No project found matching '{args.project}'")
    data: dict[str, Any] = {
        "title": args.title,
        "targetDate": args.target_date,
        "priority": args.priority,
    }
    if args.target_value is not None:
        data["targetValue"] = args.target_value
        data["targetUnit"] = args.target_unit
    goal, errors = add_goal(ctx.progress, project.id, data)
    if errors:
        _die("; ".join(errors))
    ctx.save()
    _print_json({"ok": True, "goal": goal.to_dict(), "project": project_snapshot(project, ctx.now())})


def _cmd_complete_next(args: argparse.Namespace) -> None:
    _tool("completeNextGoal", project_title=args.project)


def _cmd_toggle_goal(args: argparse.Namespace) -> None:
    ctx = _context()
    project, goal = find_goal(ctx.progress, args.goal_id)
    if project is None or goal is None:
        _die(f"Goal not found: {args.goal_id}")
    goal.toggle_completion(project, ctx.now())
    points = 0
    if goal.is_completed:
        points = award_goal(ctx.ledger, goal, ctx.now())
    ctx.save()
    if goal.is_completed:
        ctx.fire("on_goal_complete", {"project": project.title, "goal": goal.title, "goal_id": goal.id})
        if project.is_completed:
            ctx.fire("on_project_complete", {"project": project.title, "project_id": project.id})
    _print_json({
        "points": points,
        "ok": True,
        "goal": goal.to_dict(),
        "project": project_snapshot(project, ctx.now()),
        "projectCompleted": project.is_completed,
    })


# ── Habits ────────────────────────────────────────────────────


def _cmd_list_habits(args: argparse.Namespace) -> None:
    ctx = _context()
    today = ctx.today()
    habits = sorted(ctx.progress.habits, key=lambda h: h.created_date)
    if args.filter == "active":
        habits = [h for h in habits if h.is_active]
    elif args.filter == "completed-today":
        habits = [h for h in habits if h.is_completed_today(today)]
    _print_json({"ok": True, "habits": [habit_snapshot(h, ctx.pauses, today) for h in habits]})


def _cmd_add_habit(args: argparse.Namespace) -> None:
    ctx = _context()
    data: dict[str, Any] = {
        "title": args.title,
        "description": args.description or "",
        "targetValue": args.target,
        "unit": args.unit,
        "frequency": args.frequency,
        "maxCompletionDays": args.max_days or default_max_completion_days(ctx.root),
        "createdDate": ctx.now().isoformat(timespec="seconds"),
    }
    habit, errors = create_habit(ctx.progress, data)
    if errors:
        _die("; ".join(errors))
    ctx.save()
    _print_json({"ok": True, "habit": habit.to_dict()})


def _cmd_complete_habit(args: argparse.Namespace) -> None:
    if args.value is None:
        _tool("completeHabitToday", title=args.title)
        return
    ctx = _context()
    habit = _habit_by_title(ctx, args.title)
    today = ctx.today()
    count_before = habit.completed_days_count
    try:
        habit.complete_today(value=args.value, today=today)
    except ValueError as e:
        _die(str(e))
    points = award_habit(ctx.ledger, habit, today, ctx.now())
    ctx.save()
    if habit.is_completed_today(today):
        ctx.fire("on_habit_complete", {"habit": habit.title, "habit_id": habit.id, "streak": habit.current_streak(today)})
    if habit.crossed_milestone(count_before):
        fire_milestone(ctx.fire, habit)
    _print_json({"ok": True, "points": points, "habit": habit_snapshot(habit, ctx.pauses, today)})


def _cmd_uncomplete_habit(args: argparse.Namespace) -> None:
    ctx = _context()
    habit = _habit_by_title(ctx, args.title)
    removed = habit.uncomplete_today(ctx.today())
    ctx.save()
    _print_json({"ok": True, "removed": removed, "habit": habit_snapshot(habit, ctx.pauses, ctx.today())})


def _cmd_pause_habit(args: argparse.Namespace) -> None:
    _tool("pauseHabitToday", habit_title=args.title)


def _cmd_unpause_habit(args: argparse.Namespace) -> None:
    ctx = _context()
    habit = _habit_by_title(ctx, args.title)
    unpause_today(ctx.pauses, habit.id, ctx.today())
    _print_json({"ok": True, "habit_id": habit.id, "pausedToday": False})


def _cmd_terminate_habit(args: argparse.Namespace) -> None:
    ctx = _context()
    habit = _habit_by_title(ctx, args.title)
    habit.terminate(ctx.now())
    ctx.save()
    ctx.fire("on_habit_terminated", {"habit": habit.title, "habit_id": habit.id})
    _print_json({"ok": True, "habit": habit.to_dict()})


def _cmd_milestone_shown(args: argparse.Namespace) -> None:
    ctx = _context()
    habit = _habit_by_title(ctx, args.title, include_terminated=True)
    habit.mark_milestone_shown()
    ctx.save()
    _print_json({"ok": True, "habit_id": habit.id, "milestoneShown": True})


# ── Assignments ───────────────────────────────────────────────


def _cmd_list_assignments(args: argparse.Namespace) -> None:
    ctx = _context()
    now = ctx.now()
    assignments = sorted(ctx.progress.assignments, key=lambda a: a.due_date)
    if args.filter == "overdue":
        assignments = [a for a in assignments if a.is_overdue(now)]
    elif args.filter == "today":
        assignments = [a for a in assignments if a.is_due_today(now.date())]
    elif args.filter == "incomplete":
        assignments = [a for a in assignments if not a.is_completed]
    _print_json({"ok": True, "assignments": [assignment_snapshot(a, now) for a in assignments]})


def _cmd_add_assignment(args: argparse.Namespace) -> None:
    ctx = _context()
    now = ctx.now()
    data: dict[str, Any] = {
        "title": args.title,
        "dueDate": parse_due_date(args.due, now).isoformat(timespec="minutes"),
        "createdDate": now.isoformat(timespec="seconds"),
        "priority": args.priority,
        "subject": args.subject or "",
        "description": args.description or "",
        "tags": [t.strip() for t in (args.tags or "").split(",") if t.strip()],
    }
    assignment, errors = create_assignment(ctx.progress, data)
    if errors:
        _die("; ".join(errors))
    ctx.save()
    _print_json({"ok": True, "assignment": assignment.to_dict()})


def _cmd_complete_assignment(args: argparse.Namespace) -> None:
    _tool("completeAssignment", title=args.title)


# ── Summaries ─────────────────────────────────────────────────


def _cmd_summary(args: argparse.Namespace) -> None:
    _tool("getUpcomingSummary")


def _cmd_agent_context(args: argparse.Namespace) -> None:
    _print_json(generate_agent_context(workspace_root()))


def _cmd_points(args: argparse.Namespace) -> None:
    ledger = load_ledger(workspace_root())
    _print_json({"ok": True, "remaining": ledger.remaining, "earned": ledger.total_earned})


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="goaltrack", description="Goals, projects, habits and assignments tracker")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list-projects", help="List projects with progress")
    p_list.add_argument("--all", action="store_true", help="Include completed projects")
    p_list.set_defaults(func=_cmd_list_projects)

    p_add = sub.add_parser("add-project", help="Create a project")
    p_add.add_argument("--title", required=True)
    p_add.add_argument("--deadline", required=True, help="YYYY-MM-DD, ISO timestamp or 'next week/month/year'")
    p_add.add_argument("--goals", help="Comma-separated goal titles")
    p_add.add_argument("--subject")
    p_add.set_defaults(func=_cmd_add_project)

    p_goal = sub.add_parser("add-goal", help="Add a goal to a project")
    p_goal.add_argument("--project", required=True, help="Project title or part of it")
    p_goal.add_argument("--title", required=True)
    p_goal.add_argument("--target-date", required=True, help="YYYY-MM-DD or ISO timestamp")
    p_goal.add_argument("--priority", default="Default")
    p_goal.add_argument("--target-value", type=float)
    p_goal.add_argument("--target-unit", default="")
    p_goal.set_defaults(func=_cmd_add_goal)

    p_next = sub.add_parser("complete-next", help="Complete the next open goal of a project")
    p_next.add_argument("--project", required=True, help="Project title or part of it")
    p_next.set_defaults(func=_cmd_complete_next)

    g_toggle = sub.add_parser("toggle-goal", help="Toggle a goal by id")
    g_toggle.add_argument("--goal-id", required=True)
    g_toggle.set_defaults(func=_cmd_toggle_goal)

    h_list = sub.add_parser("list-habits", help="List habits")
    h_list.add_argument("--filter", choices=["all", "active", "completed-today"], default="active")
    h_list.set_defaults(func=_cmd_list_habits)

    h_add = sub.add_parser("add-habit", help="Create a habit")
    h_add.add_argument("--title", required=True)
    h_add.add_argument("--description")
    h_add.add_argument("--target", type=float, default=1.0)
    h_add.add_argument("--unit", default="times")
    h_add.add_argument("--frequency", choices=["Daily", "Weekly"], default="Daily")
    h_add.add_argument("--max-days", type=int, help="Milestone threshold in completed days")
    h_add.set_defaults(func=_cmd_add_habit)

    h_done = sub.add_parser("complete-habit", help="Complete a habit for today")
    h_done.add_argument("--title", required=True)
    h_done.add_argument("--value", type=float, help="Measured value; defaults to the target")
    h_done.set_defaults(func=_cmd_complete_habit)

    h_undo = sub.add_parser("uncomplete-habit", help="Remove today's entry")
    h_undo.add_argument("--title", required=True)
    h_undo.set_defaults(func=_cmd_uncomplete_habit)

    h_pause = sub.add_parser("pause-habit", help="Pause a habit for today only")
    h_pause.add_argument("--title", required=True)
    h_pause.set_defaults(func=_cmd_pause_habit)

    h_resume = sub.add_parser("unpause-habit", help="Lift today's pause")
    h_resume.add_argument("--title", required=True)
    h_resume.set_defaults(func=_cmd_unpause_habit)

    h_term = sub.add_parser("terminate-habit", help="Stop tracking a habit (irreversible)")
    h_term.add_argument("--title", required=True)
    h_term.set_defaults(func=_cmd_terminate_habit)

    h_ms = sub.add_parser("milestone-shown", help="Acknowledge a reached milestone")
    h_ms.add_argument("--title", required=True)
    h_ms.set_defaults(func=_cmd_milestone_shown)

    a_list = sub.add_parser("list-assignments", help="List assignments by due date")
    a_list.add_argument("--filter", choices=["all", "incomplete", "overdue", "today"], default="incomplete")
    a_list.set_defaults(func=_cmd_list_assignments)

    a_add = sub.add_parser("add-assignment", help="Create an assignment")
    a_add.add_argument("--title", required=True)
    a_add.add_argument("--due", required=True, help="YYYY-MM-DD, ISO timestamp, 'today', 'tomorrow' or 'next friday'")
    a_add.add_argument("--priority", default="Default")
    a_add.add_argument("--subject")
    a_add.add_argument("--description")
    a_add.add_argument("--tags", help="Comma-separated tags")
    a_add.set_defaults(func=_cmd_add_assignment)

    a_done = sub.add_parser("complete-assignment", help="Complete an assignment by title")
    a_done.add_argument("--title", required=True)
    a_done.set_defaults(func=_cmd_complete_assignment)

    sub.add_parser("summary", help="Daily summary").set_defaults(func=_cmd_summary)
    sub.add_parser("agent-context", help="Regenerate agent_context.json").set_defaults(func=_cmd_agent_context)
    sub.add_parser("points", help="Show the points balance").set_defaults(func=_cmd_points)

    return parser


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=os.environ.get("GOALTRACK_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except BrokenPipeError:
        raise SystemExit(0)


if __name__ == "__main__":
    main(sys.argv[1:])
