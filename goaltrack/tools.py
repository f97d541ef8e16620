"""Assistant tool handlers.

Each handler resolves its target by a case-insensitive title match, calls
the entity operation, awards points, saves through the context's hook and
returns a short human-readable result. A failed lookup is reported in the
returned text, never raised.
"""

from __future__ import annotations

import calendar
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable

import yaml

from goaltrack.hooks import run_hooks
from goaltrack.models import Assignment, Goal, Habit, Project, ProgressFile
from goaltrack.pauses import JsonKeyValueStore, KeyValueStore, is_paused_today, pause_for_today
from goaltrack.points import PointsLedger, award_assignment, award_goal, award_habit, load_ledger, save_ledger
from goaltrack.store import (
    active_habits,
    incomplete_assignments,
    incomplete_projects,
    load_progress,
    match_by_title,
    save_progress,
)
from goaltrack.values import Priority
from goaltrack.workspace import now_local

logger = logging.getLogger(__name__)

LIST_LIMIT = 10


class ToolCallTracker:
    """Thread-safe log of (tool name, result) pairs for the current exchange."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: list[tuple[str, str]] = []
        self._active: str | None = None

    @property
    def calls(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._calls)

    @property
    def active(self) -> str | None:
        with self._lock:
            return self._active

    def start_call(self, name: str) -> None:
        with self._lock:
            self._active = name

    def record(self, name: str, result: str) -> None:
        with self._lock:
            self._calls.append((name, result))
            self._active = None

    def clear(self) -> None:
        with self._lock:
            self._calls.clear()
            self._active = None


def _no_save() -> None:
    pass


@dataclass
class ToolContext:
    progress: ProgressFile
    pauses: KeyValueStore
    ledger: PointsLedger | None = None
    save: Callable[[], None] = _no_save
    tracker: ToolCallTracker = field(default_factory=ToolCallTracker)
    clock: Callable[[], datetime] = datetime.now
    root: Path | None = None  # hooks only run when a workspace is attached

    @classmethod
    def for_workspace(cls, root: Path) -> ToolContext:
        """Context backed by the workspace files under *root*."""
        progress = load_progress(root)
        ledger = load_ledger(root)

        def save() -> None:
            save_progress(progress, root)
            save_ledger(ledger, root)

        return cls(
            progress=progress,
            pauses=JsonKeyValueStore.for_workspace(root),
            ledger=ledger,
            save=save,
            clock=lambda: now_local(root),
            root=root,
        )

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def fire(self, hook_point: str, payload: dict[str, Any]) -> None:
        """Run hooks for an event; failures are logged, never raised."""
        if self.root is None:
            return
        try:
            run_hooks(hook_point, payload, self.root)
        except yaml.YAMLError as e:
            logger.warning("Skipping %s hooks, hooks.yaml is invalid: %s", hook_point, e)


# ── Date parsing ──────────────────────────────────────────────


def _add_months(ts: datetime, months: int) -> datetime:
    month_index = ts.month - 1 + months
    year = ts.year + month_index // 12
    month = month_index % 12 + 1
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def parse_deadline(text: str, now: datetime) -> datetime:
    """'next week' / 'next month' / 'next year', ISO-8601 or YYYY-MM-DD.

    Anything unparseable means one month from now.
    """
    lower = text.strip().lower()
    if lower == "next week":
        return now + timedelta(weeks=1)
    if lower == "next month":
        return _add_months(now, 1)
    if lower == "next year":
        return _add_months(now, 12)
    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError:
        logger.debug("Unparseable deadline %r, defaulting to one month out", text)
        return _add_months(now, 1)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _end_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 23, 59)


def parse_due_date(text: str, now: datetime) -> datetime:
    """'today', 'tomorrow', 'next <weekday>', 'next week', ISO-8601 or YYYY-MM-DD.

    Relative words and bare dates land at 23:59 of that day. Anything
    unparseable means the end of tomorrow.
    """
    lower = text.strip().lower()
    today = now.date()
    if lower == "today":
        return _end_of_day(today)
    if lower == "tomorrow":
        return _end_of_day(today + timedelta(days=1))
    if lower == "next week":
        return _end_of_day(today + timedelta(weeks=1))
    if lower.startswith("next ") and lower[5:] in _WEEKDAYS:
        ahead = (_WEEKDAYS.index(lower[5:]) - today.weekday() - 1) % 7 + 1
        return _end_of_day(today + timedelta(days=ahead))
    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError:
        logger.debug("Unparseable due date %r, defaulting to the end of tomorrow", text)
        return _end_of_day(today + timedelta(days=1))
    if parsed.tzinfo is not None:
        return parsed.astimezone().replace(tzinfo=None)
    if "T" not in text and " " not in text.strip():
        return _end_of_day(parsed.date())
    return parsed


def fire_milestone(fire: Callable[[str, dict[str, Any]], None], habit: Habit) -> None:
    fire("on_milestone_reached", {"habit": habit.title, "habit_id": habit.id, "days": habit.completed_days_count})


# ── Habit tools ───────────────────────────────────────────────


def complete_habit_today(ctx: ToolContext, title: str) -> str:
    name = "completeHabitToday"
    ctx.tracker.start_call(name)
    today = ctx.today()

    habit = match_by_title(title, active_habits(ctx.progress))
    if habit is None:
        result = f"No active habit found matching '{title}'."
        ctx.tracker.record(name, result)
        return result

    if habit.is_completed_today(today):
        result = f"'{habit.title}' is already completed for today."
        ctx.tracker.record(name, result)
        return result

    count_before = habit.completed_days_count
    habit.complete_today(today=today)
    points = award_habit(ctx.ledger, habit, today, ctx.now()) if ctx.ledger is not None else 0
    ctx.save()

    streak = habit.current_streak(today)
    ctx.fire("on_habit_complete", {"habit": habit.title, "habit_id": habit.id, "streak": streak, "points": points})
    milestone = habit.crossed_milestone(count_before)
    if milestone:
        fire_milestone(ctx.fire, habit)

    result = f"Completed '{habit.title}' for today! Streak: {streak} days."
    if points:
        result += f" +{points} point{'s' if points != 1 else ''}!"
    if milestone:
        result += f" Milestone reached: {habit.max_completion_days} days!"
    ctx.tracker.record(name, result)
    return result


def pause_habit_today(ctx: ToolContext, habit_title: str) -> str:
    name = "pauseHabitToday"
    ctx.tracker.start_call(name)
    today = ctx.today()

    habit = match_by_title(habit_title, active_habits(ctx.progress))
    if habit is None:
        result = f"No habit found matching '{habit_title}'. Please check the habit name and try again."
        ctx.tracker.record(name, result)
        return result

    if is_paused_today(ctx.pauses, habit.id, today):
        result = f"'{habit.title}' is already paused for today."
        ctx.tracker.record(name, result)
        return result

    pause_for_today(ctx.pauses, habit.id, today)
    ctx.save()
    result = f"Paused '{habit.title}' for today. No streak penalty, it will resume automatically tomorrow."
    ctx.tracker.record(name, result)
    return result


def get_habits(ctx: ToolContext, filter: str | None = None) -> str:
    name = "getHabits"
    ctx.tracker.start_call(name)
    today = ctx.today()
    mode = (filter or "active").strip().lower()

    habits = sorted(ctx.progress.habits, key=lambda h: h.created_date)
    if mode == "all":
        selected = habits
    elif mode == "completed-today":
        selected = [h for h in habits if h.is_completed_today(today)]
    else:
        selected = [h for h in habits if h.is_active]

    if not selected:
        result = f"No habits found for filter '{filter or 'active'}'."
        ctx.tracker.record(name, result)
        return result

    lines = []
    for h in selected[:LIST_LIMIT]:
        status = ""
        if h.is_completed_today(today):
            status = " [done today]"
        elif is_paused_today(ctx.pauses, h.id, today):
            status = " [paused today]"
        if h.is_terminated:
            status += " [terminated]"
        lines.append(
            f"- {h.title} (streak: {h.current_streak(today)} days, target: {h.formatted_target or 'done'}){status}"
        )
    if len(selected) > LIST_LIMIT:
        lines.append(f"...and {len(selected) - LIST_LIMIT} more")

    ctx.tracker.record(name, f"{len(selected)} habit(s) found")
    return "\n".join(lines)


# ── Project tools ─────────────────────────────────────────────


def create_project(
    ctx: ToolContext,
    title: str,
    deadline: str,
    goals: str | None = None,
    subject: str | None = None,
) -> str:
    """Create a project; comma-separated goals get evenly spaced target dates."""
    name = "createProject"
    ctx.tracker.start_call(name)
    now = ctx.now()
    due = parse_deadline(deadline, now)

    try:
        project = Project(title=title, deadline=due, created_date=now, subject=subject or "")
    except ValueError as e:
        result = f"Could not create project: {e}"
        ctx.tracker.record(name, result)
        return result

    goal_titles = [g.strip() for g in (goals or "").split(",") if g.strip()]
    if goal_titles:
        step = (due - now) / len(goal_titles)
        for index, goal_title in enumerate(goal_titles):
            project.add_goal(Goal(title=goal_title, target_date=now + step * (index + 1), sort_order=index))

    ctx.progress.projects.append(project)
    ctx.save()
    logger.info("Assistant created project %r", project.title)

    goal_text = f" with {len(project.goals)} goals" if project.goals else ""
    result = f"Created project '{project.title}'{goal_text}, deadline {due.strftime('%b %d, %Y')}"
    ctx.tracker.record(name, result)
    return result


def complete_next_goal(ctx: ToolContext, project_title: str) -> str:
    """Complete whichever goal is next in the matched project."""
    name = "completeNextGoal"
    ctx.tracker.start_call(name)
    now = ctx.now()

    project = match_by_title(project_title, incomplete_projects(ctx.progress))
    if project is None:
        result = f"No incomplete project found matching '{project_title}'."
        ctx.tracker.record(name, result)
        return result

    goal = project.next_goal
    if goal is None:
        result = f"'{project.title}' has no open goals."
        ctx.tracker.record(name, result)
        return result

    goal.toggle_completion(project, now)
    points = award_goal(ctx.ledger, goal, now) if ctx.ledger is not None else 0
    ctx.save()

    ctx.fire("on_goal_complete", {"project": project.title, "goal": goal.title, "goal_id": goal.id})
    result = f"Completed goal '{goal.title}' in '{project.title}' ({project.progress_percentage:.0f}%)."
    if project.is_completed:
        ctx.fire("on_project_complete", {"project": project.title, "project_id": project.id})
        result += " Project complete!"
    elif project.next_goal is not None:
        result += f" Next: {project.next_goal.title}."
    if points:
        result += f" +{points} points!"
    ctx.tracker.record(name, result)
    return result


def get_projects(ctx: ToolContext, filter: str | None = None) -> str:
    name = "getProjects"
    ctx.tracker.start_call(name)
    now = ctx.now()
    mode = (filter or "incomplete").strip().lower()

    projects = sorted(ctx.progress.projects, key=lambda p: p.deadline)
    selected = projects if mode == "all" else [p for p in projects if not p.is_completed]

    if not selected:
        result = f"No projects found for filter '{filter or 'incomplete'}'."
        ctx.tracker.record(name, result)
        return result

    lines = []
    for p in selected[:LIST_LIMIT]:
        nxt = f" Next: {p.next_goal.title}" if p.next_goal is not None else ""
        overdue = " [OVERDUE]" if p.is_overdue(now) else ""
        lines.append(
            f"- {p.title} ({p.progress_percentage:.0f}%, {p.completed_goals_count}/{len(p.goals)} goals){nxt}{overdue}"
        )
    if len(selected) > LIST_LIMIT:
        lines.append(f"...and {len(selected) - LIST_LIMIT} more")

    ctx.tracker.record(name, f"{len(selected)} project(s) found")
    return "\n".join(lines)

    """Overdue and imminent deadlines, active projects, today's habits and top streaks."""
def get_upcoming_summary(ctx: ToolContext) -> str:
    """Overdue and imminent goals and assignments, active projects, today's habits and top streaks."""
    name = "getUpcomingSummary"
    ctx.tracker.start_call(name)
    now = ctx.now()
    today = now.date()
    tomorrow = today + timedelta(days=1)

    # (due, title) for every open goal and assignment
    open_items = sorted(
        [(g.target_date, g.title) for p in ctx.progress.projects if not p.is_completed
         for g in p.goals if not g.is_completed]
        + [(a.due_date, a.title) for a in incomplete_assignments(ctx.progress)],
        key=lambda item: item[0],
    )
    overdue = [title for due, title in open_items if due < now]
    due_today = [title for due, title in open_items if due.date() == today and due >= now]
    due_tomorrow = [title for due, title in open_items if due.date() == tomorrow]

    sections = []
    for label, titles in (("OVERDUE", overdue), ("Due today", due_today), ("Due tomorrow", due_tomorrow)):
        if titles:
            sections.append(f"{label} ({len(titles)}): " + ", ".join(titles[:3]))

    projects = incomplete_projects(ctx.progress)
    if projects:
        shown = ", ".join(f"{p.title} ({p.progress_percentage:.0f}%)" for p in projects[:3])
        sections.append(f"Active projects ({len(projects)}): {shown}")

    habits = active_habits(ctx.progress)
    done = [h for h in habits if h.is_completed_today(today)]
    pending = [
        h for h in habits
        if not h.is_completed_today(today) and not is_paused_today(ctx.pauses, h.id, today)
    ]
    if habits:
        sections.append(f"Habits: {len(done)}/{len(habits)} done today")
    if pending:
        sections.append("Pending habits: " + ", ".join(h.title for h in pending[:3]))

    streaks = sorted(
        ((h, h.current_streak(today)) for h in habits),
        key=lambda pair: pair[1],
        reverse=True,
    )
    top = [(h, s) for h, s in streaks if s > 0][:3]
    if top:
        sections.append("Top streaks: " + ", ".join(f"{h.title}: {s} days" for h, s in top))

    result = "\n".join(sections) if sections else "All clear! No pending goals or habits."
    ctx.tracker.record(name, "Summary generated")
    return result


# ── Assignment tools ──────────────────────────────────────────


def create_assignment(
    ctx: ToolContext,
    title: str,
    due_date: str,
    priority: str | None = None,
    subject: str | None = None,
) -> str:
    name = "createAssignment"
    ctx.tracker.start_call(name)
    now = ctx.now()
    due = parse_due_date(due_date, now)
    try:
        level = Priority.parse(priority)
    except ValueError:
        level = Priority.NONE

    try:
        assignment = Assignment(title=title, due_date=due, created_date=now, priority=level, subject=subject or "")
    except ValueError as e:
        result = f"Could not create assignment: {e}"
        ctx.tracker.record(name, result)
        return result

    ctx.progress.assignments.append(assignment)
    ctx.save()
    logger.info("Assistant created assignment %r", assignment.title)

    result = f"Created '{assignment.title}' due {assignment.formatted_due_date} ({level.value})"
    ctx.tracker.record(name, result)
    return result


def complete_assignment(ctx: ToolContext, title: str) -> str:
    """Complete the earliest-due open assignment matching *title*."""
    name = "completeAssignment"
    ctx.tracker.start_call(name)
    now = ctx.now()

    assignment = match_by_title(title, incomplete_assignments(ctx.progress))
    if assignment is None:
        result = f"No incomplete assignment found matching '{title}'."
        ctx.tracker.record(name, result)
        return result

    assignment.toggle_completion(now)
    points = award_assignment(ctx.ledger, assignment, now) if ctx.ledger is not None else 0
    ctx.save()
    ctx.fire("on_assignment_complete", {
        "assignment": assignment.title, "assignment_id": assignment.id, "points": points,
    })

    result = f"Completed '{assignment.title}'."
    if points:
        result += f" +{points} point{'s' if points != 1 else ''}!"
    ctx.tracker.record(name, result)
    return result


def get_assignments(ctx: ToolContext, filter: str | None = None) -> str:
    name = "getAssignments"
    ctx.tracker.start_call(name)
    now = ctx.now()
    mode = (filter or "incomplete").strip().lower()

    assignments = sorted(ctx.progress.assignments, key=lambda a: a.due_date)
    if mode == "all":
        selected = assignments
    elif mode == "overdue":
        selected = [a for a in assignments if a.is_overdue(now)]
    elif mode == "today":
        selected = [a for a in assignments if a.is_due_today(now.date())]
    else:
        selected = [a for a in assignments if not a.is_completed]

    if not selected:
        result = f"No assignments found for filter '{filter or 'incomplete'}'."
        ctx.tracker.record(name, result)
        return result

    lines = []
    for a in selected[:LIST_LIMIT]:
        level = f" ({a.priority.value})" if a.priority is not Priority.NONE else ""
        status = " [done]" if a.is_completed else (" [OVERDUE]" if a.is_overdue(now) else "")
        lines.append(f"- {a.title}{level}, due {a.formatted_due_date}{status}")
    if len(selected) > LIST_LIMIT:
        lines.append(f"...and {len(selected) - LIST_LIMIT} more")

    ctx.tracker.record(name, f"{len(selected)} assignment(s) found")
    return "\n".join(lines)


# ── Registry ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    handler: Callable[..., str]


TOOLS: dict[str, Tool] = {
    t.name: t
    for t in (
        Tool("completeHabitToday", "Mark a habit as completed for today by matching its title. Awards points.",
             complete_habit_today),
        Tool("pauseHabitToday", "Pause a habit for today only so it won't count as missed.",
             pause_habit_today),
        Tool("getHabits", "Fetch habits with streak info. Filter: 'all', 'active' or 'completed-today'.",
             get_habits),
        Tool("createProject", "Create a project with a deadline and optional comma-separated goals.",
             create_project),
        Tool("completeNextGoal", "Complete the next open goal of a project matched by title.",
             complete_next_goal),
        Tool("getProjects", "Fetch projects with progress. Filter: 'all' or 'incomplete'.",
             get_projects),
        Tool("getUpcomingSummary", "Daily summary of overdue work, projects, habits and streaks.",
             get_upcoming_summary),
        Tool("createAssignment", "Create an assignment with a title and due date, optionally a priority and subject.",
             create_assignment),
        Tool("completeAssignment", "Mark an assignment as complete by matching its title. Awards points.",
             complete_assignment),
        Tool("getAssignments", "Fetch assignments. Filter: 'all', 'incomplete', 'overdue' or 'today'.",
             get_assignments),
    )
}


def call_tool(ctx: ToolContext, name: str, arguments: dict[str, Any] | None = None) -> str:
    """Dispatch a tool call by name with keyword arguments."""
    tool = TOOLS.get(name)
    if tool is None:
        raise ValueError(f"Unknown tool: {name}")
    return tool.handler(ctx, **(arguments or {}))
