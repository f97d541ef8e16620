"""Project, habit and assignment CRUD, validation and title lookup over progress.yaml."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, TypeVar

from goaltrack.fileio import read_yaml, write_yaml_atomic
from goaltrack.models import Assignment, Goal, Habit, Project, ProgressFile, parse_timestamp
from goaltrack.values import HabitFrequency, Priority, TargetUnit
from goaltrack.workspace import progress_path as _progress_path

logger = logging.getLogger(__name__)

T = TypeVar("T", Project, Habit, Goal, Assignment)


# ── Validation ────────────────────────────────────────────────


def _check_title(data: dict[str, Any], errors: list[str]) -> None:
    title = data.get("title")
    if title is None:
        errors.append("Missing required field: title")
    elif not isinstance(title, str) or not title.strip():
        errors.append("title must be a non-empty string")


def _check_timestamp(data: dict[str, Any], key: str, errors: list[str], required: bool = False) -> None:
    if key not in data or data[key] in (None, ""):
        if required:
            errors.append(f"Missing required field: {key}")
        return
    try:
        parse_timestamp(data[key])
    except (TypeError, ValueError):
        errors.append(f"{key} must be an ISO date or timestamp")


def _check_priority_and_target(data: dict[str, Any], errors: list[str]) -> None:
    if "priority" in data:
        try:
            Priority.parse(data["priority"])
        except ValueError as e:
            errors.append(str(e))
    if data.get("targetValue") is not None:
        if not isinstance(data["targetValue"], (int, float)) or data["targetValue"] <= 0:
            errors.append("targetValue must be a positive number")
    if "targetUnit" in data:
        try:
            TargetUnit.parse(data["targetUnit"])
        except ValueError as e:
            errors.append(str(e))


def validate_goal(data: dict[str, Any]) -> list[str]:
    """Validate goal fields (camelCase) and return a list of errors."""
    errors: list[str] = []
    _check_title(data, errors)
    _check_timestamp(data, "targetDate", errors, required=True)
    _check_priority_and_target(data, errors)
    return errors


def validate_project(data: dict[str, Any]) -> list[str]:
    """Validate a project with its nested goals.

    A project that has goals is completed exactly when all of them are, so
    an ``isCompleted`` flag contradicting the goal list is rejected.
    """
    errors: list[str] = []
    _check_title(data, errors)
    _check_timestamp(data, "deadline", errors, required=True)
    _check_timestamp(data, "createdDate", errors)
    goals = data.get("goals") or []
    for i, goal in enumerate(goals):
        if not isinstance(goal, dict):
            errors.append(f"goals[{i}] must be a mapping")
            continue
        errors.extend(f"goals[{i}]: {e}" for e in validate_goal(goal))
    if goals and not errors:
        open_goals = [i for i, g in enumerate(goals) if not g.get("isCompleted")]
        if data.get("isCompleted") and open_goals:
            errors.append(f"isCompleted is true but goals[{open_goals[0]}] is still open")
        elif not data.get("isCompleted") and not open_goals:
            errors.append("every goal is completed, so isCompleted must be true")
    return errors


def validate_habit(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_title(data, errors)
    if "targetValue" in data:
        value = data["targetValue"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors.append("targetValue must be a positive number")
    if "maxCompletionDays" in data:
        days = data["maxCompletionDays"]
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            errors.append("maxCompletionDays must be a positive integer")
    if "unit" in data:
        try:
            TargetUnit.parse(data["unit"])
        except ValueError as e:
            errors.append(str(e))
    if "frequency" in data:
        try:
            HabitFrequency.parse(data["frequency"])
        except ValueError as e:
            errors.append(str(e))
    return errors


def validate_assignment(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_title(data, errors)
    _check_timestamp(data, "dueDate", errors, required=True)
    _check_timestamp(data, "createdDate", errors)
    _check_priority_and_target(data, errors)
    tags = data.get("tags")
    if tags is not None and (not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)):
        errors.append("tags must be a list of strings")
    return errors


# ── Load / save ───────────────────────────────────────────────


def load_progress(root: Path | None = None) -> ProgressFile:
    """Load progress.yaml into a ProgressFile model."""
    return ProgressFile.from_dict(read_yaml(_progress_path(root)))


def save_progress(progress: ProgressFile, root: Path | None = None) -> None:
    """Write the ProgressFile back to progress.yaml atomically."""
    write_yaml_atomic(_progress_path(root), progress.to_dict())


# ── Lookup ────────────────────────────────────────────────────


def find_project(progress: ProgressFile, project_id: str) -> Project | None:
    for p in progress.projects:
        if p.id == project_id:
            return p
    return None


def find_habit(progress: ProgressFile, habit_id: str) -> Habit | None:
    for h in progress.habits:
        if h.id == habit_id:
            return h
    return None


def find_assignment(progress: ProgressFile, assignment_id: str) -> Assignment | None:
    for a in progress.assignments:
        if a.id == assignment_id:
            return a
    return None


def find_goal(progress: ProgressFile, goal_id: str) -> tuple[Project | None, Goal | None]:
    for p in progress.projects:
        g = p.find_goal(goal_id)
        if g is not None:
            return p, g
    return None, None


def match_by_title(query: str, items: Iterable[T]) -> T | None:
    """First item whose title contains *query*, ignoring case.

    An exact (case-insensitive) title match wins over a substring match.
    """
    needle = query.strip().lower()
    if not needle:
        return None
    candidates = list(items)
    for item in candidates:
        if item.title.lower() == needle:
            return item
    for item in candidates:
        if needle in item.title.lower():
            return item
    logger.debug("No title match for %r among %d candidates", query, len(candidates))
    return None


def active_habits(progress: ProgressFile) -> list[Habit]:
    return [h for h in sorted(progress.habits, key=lambda h: h.created_date) if h.is_active]


def incomplete_projects(progress: ProgressFile) -> list[Project]:
    return [p for p in sorted(progress.projects, key=lambda p: p.deadline) if not p.is_completed]


def incomplete_assignments(progress: ProgressFile) -> list[Assignment]:
    return [a for a in sorted(progress.assignments, key=lambda a: a.due_date) if not a.is_completed]


# ── CRUD ──────────────────────────────────────────────────────


def create_project(progress: ProgressFile, data: dict[str, Any]) -> tuple[Project | None, list[str]]:
    """Create and add a project (with nested goals). Returns (project, errors)."""
    errors = validate_project(data)
    if errors:
        return None, errors
    if data.get("id") and find_project(progress, str(data["id"])):
        return None, [f"Project ID already exists: {data['id']}"]
    try:
        project = Project.from_dict(data)
    except ValueError as e:
        return None, [str(e)]
    progress.projects.append(project)
    logger.info("Created project %r with %d goals", project.title, len(project.goals))
    return project, []


def add_goal(
    progress: ProgressFile, project_id: str, data: dict[str, Any]
) -> tuple[Goal | None, list[str]]:
    project = find_project(progress, project_id)
    if project is None:
        return None, [f"Project not found: {project_id}"]
    errors = validate_goal(data)
    if errors:
        return None, errors
    try:
        goal = project.add_goal(Goal.from_dict({**data, "projectId": None}))
    except ValueError as e:
        return None, [str(e)]
    logger.info("Added goal %r to project %r", goal.title, project.title)
    return goal, []


def delete_project(progress: ProgressFile, project_id: str) -> bool:
    """Remove a project; its goals go with it."""
    for i, p in enumerate(progress.projects):
        if p.id == project_id:
            progress.projects.pop(i)
            logger.info("Deleted project %r and %d goals", p.title, len(p.goals))
            return True
    return False


def delete_goal(progress: ProgressFile, goal_id: str, now: datetime | None = None) -> bool:
    project, goal = find_goal(progress, goal_id)
    if project is None or goal is None:
        return False
    project.remove_goal(goal_id, now)
    return True


def create_habit(progress: ProgressFile, data: dict[str, Any]) -> tuple[Habit | None, list[str]]:
    """Create and add a habit. Returns (habit, errors)."""
    errors = validate_habit(data)
    if errors:
        return None, errors
    if data.get("id") and find_habit(progress, str(data["id"])):
        return None, [f"Habit ID already exists: {data['id']}"]
    try:
        habit = Habit.from_dict(data)
    except ValueError as e:
        return None, [str(e)]
    progress.habits.append(habit)
    logger.info("Created habit %r (%s)", habit.title, habit.formatted_target or "checkbox")
    return habit, []


def delete_habit(progress: ProgressFile, habit_id: str) -> bool:
    """Remove a habit together with its entries."""
    for i, h in enumerate(progress.habits):
        if h.id == habit_id:
            progress.habits.pop(i)
            logger.info("Deleted habit %r", h.title)
            return True
    return False


def create_assignment(progress: ProgressFile, data: dict[str, Any]) -> tuple[Assignment | None, list[str]]:
    """Create and add an assignment. Returns (assignment, errors)."""
    errors = validate_assignment(data)
    if errors:
        return None, errors
    if data.get("id") and find_assignment(progress, str(data["id"])):
        return None, [f"Assignment ID already exists: {data['id']}"]
    try:
        assignment = Assignment.from_dict(data)
    except ValueError as e:
        return None, [str(e)]
    progress.assignments.append(assignment)
    logger.info("Created assignment %r due %s", assignment.title, assignment.formatted_due_date)
    return assignment, []


def delete_assignment(progress: ProgressFile, assignment_id: str) -> bool:
    for i, a in enumerate(progress.assignments):
        if a.id == assignment_id:
            progress.assignments.pop(i)
            logger.info("Deleted assignment %r", a.title)
            return True
    return False
