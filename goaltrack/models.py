"""Typed dataclasses for the goaltrack data model.

Goals, projects, habit entries, habits and assignments, plus the
ProgressFile aggregate that the store reads and writes. All models use
from_dict/to_dict for JSON/YAML serialization; camelCase on disk maps to
snake_case in Python. Unknown keys are ignored; missing keys use defaults,
and a flag whose date is missing gets stamped when loaded.

Completion cascades and streak derivations live on the entities
themselves. None of them perform I/O; callers own persistence.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from goaltrack.streaks import (
    best_streak as _best_streak,
    completion_rate as _completion_rate,
    current_streak as _current_streak,
    qualifying_days,
)
from goaltrack.values import HabitFrequency, Priority, TargetUnit

logger = logging.getLogger(__name__)


# ── Primitives ────────────────────────────────────────────────


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(raw: Any) -> datetime | None:
    """Accept datetime, date (taken as local midnight) or an ISO string."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    return datetime.fromisoformat(str(raw))


def parse_day(raw: Any) -> date:
    """Normalize a datetime, date or ISO string to a calendar day."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw)
    if "T" in text or " " in text:
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat(timespec="seconds") if ts is not None else None


def _require_title(kind: str, title: str) -> None:
    if not isinstance(title, str) or not title.strip():
        raise ValueError(f"{kind} title must be a non-empty string")


def _repair_stamp(kind: str, record_id: Any, flag: bool, stamp: datetime | None) -> datetime | None:
    """Make a stored flag/date pair agree: stamp a missing date, drop a stray one."""
    if flag and stamp is None:
        logger.warning("%s %s is marked done without a date; stamping it now", kind, record_id)
        return datetime.now()
    if not flag and stamp is not None:
        logger.warning("%s %s carries a date but is not marked done; dropping the date", kind, record_id)
        return None
    return stamp


# ── Goals & projects ──────────────────────────────────────────


@dataclass
class Goal:
    title: str
    target_date: datetime
    id: str = field(default_factory=new_id)
    is_completed: bool = False
    completed_date: datetime | None = None
    sort_order: int | None = None  # None until a project places the goal
    priority: Priority = Priority.NONE
    target_value: float | None = None
    target_unit: TargetUnit = TargetUnit.NONE
    project_id: str | None = None  # non-owning; resolved through the aggregate
    points_awarded: bool = False

    def __post_init__(self) -> None:
        _require_title("Goal", self.title)
        if self.is_completed != (self.completed_date is not None):
            raise ValueError("Goal completed_date must be set exactly when is_completed")

    @property
    def formatted_target(self) -> str | None:
        if self.target_value is None or self.target_unit is TargetUnit.NONE:
            return None
        return self.target_unit.format(self.target_value)

    @property
    def formatted_target_date(self) -> str:
        return self.target_date.strftime("%b %d, %Y")

    def is_overdue(self, now: datetime | None = None) -> bool:
        now = now or datetime.now()
        return not self.is_completed and self.target_date < now

    def toggle_completion(self, project: Project | None = None, now: datetime | None = None) -> None:
        """Flip completion and cascade the change to the owning project.

        Un-completing any goal un-completes a completed project. Completing
        the last open goal completes the project.
        """
        if project is not None and self.project_id != project.id:
            raise ValueError(f"Goal {self.id} does not belong to project {project.id}")
        now = now or datetime.now()

        self.is_completed = not self.is_completed
        self.completed_date = now if self.is_completed else None

        if project is None:
            return
        if not self.is_completed and project.is_completed:
            project.is_completed = False
            project.completed_date = None
        elif self.is_completed and not project.is_completed:
            if project.goals and all(g.is_completed for g in project.goals):
                project.is_completed = True
                project.completed_date = now

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Goal:
        goal_id = str(d.get("id") or new_id())
        target_value = d.get("targetValue")
        sort_order = d.get("sortOrder")
        is_completed = bool(d.get("isCompleted", False))
        return cls(
            id=goal_id,
            title=str(d.get("title", "")),
            target_date=parse_timestamp(d.get("targetDate")) or datetime.now(),
            is_completed=is_completed,
            completed_date=_repair_stamp("Goal", goal_id, is_completed, parse_timestamp(d.get("completedDate"))),
            sort_order=int(sort_order) if sort_order is not None else None,
            priority=Priority.parse(d.get("priority")),
            target_value=float(target_value) if target_value is not None else None,
            target_unit=TargetUnit.parse(d.get("targetUnit")),
            project_id=d.get("projectId"),
            points_awarded=bool(d.get("pointsAwarded", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "targetDate": _iso(self.target_date),
            "isCompleted": self.is_completed,
            "completedDate": _iso(self.completed_date),
            "sortOrder": self.sort_order,
            "priority": self.priority.value,
        }
        if self.target_value is not None:
            d["targetValue"] = self.target_value
            d["targetUnit"] = self.target_unit.value
        if self.project_id:
            d["projectId"] = self.project_id
        if self.points_awarded:
            d["pointsAwarded"] = True
        return d


@dataclass
class Project:
    title: str
    deadline: datetime
    id: str = field(default_factory=new_id)
    description: str = ""
    created_date: datetime = field(default_factory=datetime.now)
    is_completed: bool = False
    completed_date: datetime | None = None
    subject: str = ""
    color_code: str | None = None
    goals: list[Goal] = field(default_factory=list)

    def __post_init__(self) -> None:
        _require_title("Project", self.title)
        if self.is_completed != (self.completed_date is not None):
            raise ValueError("Project completed_date must be set exactly when is_completed")
        if self.goals and self.is_completed != all(g.is_completed for g in self.goals):
            raise ValueError("Project with goals must be completed exactly when all of its goals are")
        next_order = max((g.sort_order for g in self.goals if g.sort_order is not None), default=-1) + 1
        for goal in self.goals:
            if goal.project_id not in (None, self.id):
                raise ValueError(f"Goal {goal.id} already belongs to project {goal.project_id}")
            goal.project_id = self.id
            if goal.sort_order is None:
                goal.sort_order = next_order
                next_order += 1

    # Derived

    @property
    def completed_goals_count(self) -> int:
        return sum(1 for g in self.goals if g.is_completed)

    @property
    def progress_percentage(self) -> float:
        """Unrounded 0-100; zero for a project without goals."""
        if not self.goals:
            return 0.0
        return self.completed_goals_count / len(self.goals) * 100

    @property
    def sorted_goals(self) -> list[Goal]:
        return sorted(self.goals, key=lambda g: (g.target_date, g.sort_order))

    @property
    def next_goal(self) -> Goal | None:
        """Open goal with the earliest target date; sort_order breaks ties."""
        open_goals = [g for g in self.goals if not g.is_completed]
        if not open_goals:
            return None
        return min(open_goals, key=lambda g: (g.target_date, g.sort_order))

    @property
    def state(self) -> str:
        """'completed', 'in_progress' or 'no_goals'."""
        if self.is_completed:
            return "completed"
        return "in_progress" if self.goals else "no_goals"

    def is_overdue(self, now: datetime | None = None) -> bool:
        now = now or datetime.now()
        return not self.is_completed and self.deadline < now

    # Goal management

    def find_goal(self, goal_id: str) -> Goal | None:
        for g in self.goals:
            if g.id == goal_id:
                return g
        return None

    def add_goal(self, goal: Goal) -> Goal:
        """Attach *goal*, keeping the project's completion in step with its goals."""
        if goal.project_id not in (None, self.id):
            raise ValueError(f"Goal {goal.id} already belongs to project {goal.project_id}")
        if self.find_goal(goal.id) is not None:
            raise ValueError(f"Goal {goal.id} is already attached")
        if goal.sort_order is None:
            goal.sort_order = max((g.sort_order for g in self.goals), default=-1) + 1
        goal.project_id = self.id
        self.goals.append(goal)
        if self.is_completed and not goal.is_completed:
            self.is_completed = False
            self.completed_date = None
        elif not self.is_completed and all(g.is_completed for g in self.goals):
            self.is_completed = True
            self.completed_date = goal.completed_date
        return goal

    def remove_goal(self, goal_id: str, now: datetime | None = None) -> Goal | None:
        goal = self.find_goal(goal_id)
        if goal is None:
            return None
        self.goals.remove(goal)
        goal.project_id = None
        if not self.is_completed and self.goals and all(g.is_completed for g in self.goals):
            self.is_completed = True
            self.completed_date = now or datetime.now()
        return goal

    def reorder_goals(self, goal_ids: list[str]) -> None:
        """Assign sort_order following *goal_ids*; unknown ids are ignored."""
        position = 0
        for goal_id in goal_ids:
            goal = self.find_goal(goal_id)
            if goal is not None:
                goal.sort_order = position
                position += 1
        listed = set(goal_ids)
        for goal in sorted(self.goals, key=lambda g: g.sort_order):
            if goal.id not in listed:
                goal.sort_order = position
                position += 1

    def toggle_goal(self, goal_id: str, now: datetime | None = None) -> Goal:
        goal = self.find_goal(goal_id)
        if goal is None:
            raise KeyError(goal_id)
        goal.toggle_completion(self, now)
        return goal

    def toggle_completion(self, now: datetime | None = None) -> None:
        """Explicit completion switch for a project without goals.

        A project with goals follows them; toggling it directly raises ValueError.
        """
        if self.goals:
            raise ValueError(f"Project {self.id} has goals; its completion follows them")
        self.is_completed = not self.is_completed
        self.completed_date = (now or datetime.now()) if self.is_completed else None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        project_id = str(d.get("id") or new_id())
        goals = []
        for gd in d.get("goals") or []:
            if isinstance(gd, dict):
                gd = {**gd, "projectId": project_id}
                goals.append(Goal.from_dict(gd))

        is_completed = bool(d.get("isCompleted", False))
        completed_date = _repair_stamp("Project", project_id, is_completed, parse_timestamp(d.get("completedDate")))
        if goals and is_completed != all(g.is_completed for g in goals):
            logger.warning(
                "Project %s: isCompleted=%s disagrees with its goals; following the goals", project_id, is_completed
            )
            is_completed = not is_completed
            completed_date = max(g.completed_date for g in goals) if is_completed else None

        return cls(
            id=project_id,
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            created_date=parse_timestamp(d.get("createdDate")) or datetime.now(),
            deadline=parse_timestamp(d.get("deadline")) or datetime.now(),
            is_completed=is_completed,
            completed_date=completed_date,
            subject=str(d.get("subject", "") or ""),
            color_code=d.get("colorCode"),
            goals=goals,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdDate": _iso(self.created_date),
            "deadline": _iso(self.deadline),
            "isCompleted": self.is_completed,
            "completedDate": _iso(self.completed_date),
            "subject": self.subject,
        }
        if self.color_code:
            d["colorCode"] = self.color_code
        goals = []
        for g in self.goals:
            gd = g.to_dict()
            gd.pop("projectId", None)  # implied by nesting
            goals.append(gd)
        d["goals"] = goals
        return d


def toggle_goal_completion(goal: Goal, project: Project | None = None, now: datetime | None = None) -> Goal:
    goal.toggle_completion(project, now)
    return goal


# ── Habits ────────────────────────────────────────────────────


@dataclass
class HabitEntry:
    date: date
    value: float
    id: str = field(default_factory=new_id)
    points_awarded: bool = False

    def __post_init__(self) -> None:
        self.date = parse_day(self.date)
        if self.value < 0:
            raise ValueError("Habit entry value must be >= 0")

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HabitEntry:
        return cls(
            id=str(d.get("id") or new_id()),
            date=parse_day(d.get("date")),
            value=float(d.get("value", 0.0)),
            points_awarded=bool(d.get("pointsAwarded", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "date": self.date.isoformat(), "value": self.value}
        if self.points_awarded:
            d["pointsAwarded"] = True
        return d


@dataclass
class Habit:
    title: str
    id: str = field(default_factory=new_id)
    description: str = ""
    target_value: float = 1.0
    unit: TargetUnit = TargetUnit.TIMES
    frequency: HabitFrequency = HabitFrequency.DAILY
    max_completion_days: int = 60
    milestone_shown: bool = False
    is_terminated: bool = False
    terminated_date: datetime | None = None
    created_date: datetime = field(default_factory=datetime.now)
    color_code: str | None = None
    entries: list[HabitEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        _require_title("Habit", self.title)
        if not self.target_value > 0:
            raise ValueError("Habit target_value must be > 0")
        if self.max_completion_days < 1:
            raise ValueError("Habit max_completion_days must be >= 1")
        if self.is_terminated != (self.terminated_date is not None):
            raise ValueError("Habit terminated_date must be set exactly when is_terminated")

    @property
    def is_active(self) -> bool:
        return not self.is_terminated

    @property
    def formatted_target(self) -> str:
        return self.unit.format(self.target_value)

    # Entries

    def entry_for(self, day: date) -> HabitEntry | None:
        for e in self.entries:
            if e.date == day:
                return e
        return None

    def today_entry(self, today: date | None = None) -> HabitEntry | None:
        return self.entry_for(today or date.today())

    def record_entry(self, day: date, value: float) -> HabitEntry:
        """Create or overwrite the single entry for *day*."""
        day = parse_day(day)
        existing = self.entry_for(day)
        if existing is not None:
            if value < 0:
                raise ValueError("Habit entry value must be >= 0")
            existing.value = value
            return existing
        entry = HabitEntry(date=day, value=value)
        self.entries.append(entry)
        return entry

    def complete_today(self, value: float | None = None, today: date | None = None) -> HabitEntry:
        """Record today's value; a bare call counts as meeting the target."""
        return self.record_entry(today or date.today(), self.target_value if value is None else value)

    def uncomplete_today(self, today: date | None = None) -> bool:
        """Drop today's entry. Returns whether anything was removed."""
        today = today or date.today()
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.date != today]
        return len(self.entries) != before

    # Derived

    def completed_days(self) -> set[date]:
        return qualifying_days(self.entries, self.target_value)

    @property
    def completed_days_count(self) -> int:
        return len(self.completed_days())

    @property
    def days_remaining(self) -> int:
        return max(0, self.max_completion_days - self.completed_days_count)

    @property
    def has_reached_milestone(self) -> bool:
        return self.completed_days_count >= self.max_completion_days

    @property
    def just_hit_milestone(self) -> bool:
        """True only while the count sits exactly on the threshold and nobody has celebrated yet."""
        return self.completed_days_count == self.max_completion_days and not self.milestone_shown

    def crossed_milestone(self, count_before: int) -> bool:
        """Whether the completion that moved the count up from *count_before* landed on the milestone."""
        return count_before < self.max_completion_days and self.just_hit_milestone

    @property
    def milestone_progress(self) -> float:
        return self.completed_days_count / self.max_completion_days * 100

    @property
    def best_streak(self) -> int:
        return _best_streak(self.completed_days())

    def current_streak(self, today: date | None = None) -> int:
        return _current_streak(self.completed_days(), today or date.today())

    def completion_rate(self, today: date | None = None) -> float:
        return _completion_rate(
            self.completed_days_count, self.created_date.date(), today or date.today()
        )

    def is_completed_today(self, today: date | None = None) -> bool:
        return (today or date.today()) in self.completed_days()

    # Lifecycle

    def terminate(self, now: datetime | None = None) -> None:
        if self.is_terminated:
            return
        self.is_terminated = True
        self.terminated_date = now or datetime.now()

    def mark_milestone_shown(self) -> None:
        self.milestone_shown = True

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        habit_id = str(d.get("id") or new_id())
        entries = [HabitEntry.from_dict(e) for e in (d.get("entries") or []) if isinstance(e, dict)]
        is_terminated = bool(d.get("isTerminated", False))
        return cls(
            id=habit_id,
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            target_value=float(d.get("targetValue", 1.0)),
            unit=TargetUnit.parse(d.get("unit", TargetUnit.TIMES.value)),
            frequency=HabitFrequency.parse(d.get("frequency")),
            max_completion_days=int(d.get("maxCompletionDays", 60)),
            milestone_shown=bool(d.get("milestoneShown", False)),
            is_terminated=is_terminated,
            terminated_date=_repair_stamp("Habit", habit_id, is_terminated, parse_timestamp(d.get("terminatedDate"))),
            created_date=parse_timestamp(d.get("createdDate")) or datetime.now(),
            color_code=d.get("colorCode"),
            entries=entries,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "targetValue": self.target_value,
            "unit": self.unit.value,
            "frequency": self.frequency.value,
            "maxCompletionDays": self.max_completion_days,
            "milestoneShown": self.milestone_shown,
            "isTerminated": self.is_terminated,
            "terminatedDate": _iso(self.terminated_date),
            "createdDate": _iso(self.created_date),
        }
        if self.color_code:
            d["colorCode"] = self.color_code
        d["entries"] = [e.to_dict() for e in sorted(self.entries, key=lambda e: e.date)]
        return d


# ── Assignments ───────────────────────────────────────────────


@dataclass
class Assignment:
    """A stand-alone task with a due date; completing it is worth a point."""

    title: str
    due_date: datetime
    id: str = field(default_factory=new_id)
    description: str = ""
    created_date: datetime = field(default_factory=datetime.now)
    is_completed: bool = False
    completed_date: datetime | None = None
    priority: Priority = Priority.NONE
    subject: str = ""
    tags: list[str] = field(default_factory=list)
    notes: str = ""
    target_value: float | None = None
    target_unit: TargetUnit = TargetUnit.NONE
    color_code: str | None = None
    points_awarded: bool = False

    def __post_init__(self) -> None:
        _require_title("Assignment", self.title)
        if self.is_completed != (self.completed_date is not None):
            raise ValueError("Assignment completed_date must be set exactly when is_completed")

    @property
    def formatted_target(self) -> str | None:
        if self.target_value is None or self.target_unit is TargetUnit.NONE:
            return None
        return self.target_unit.format(self.target_value)

    @property
    def formatted_due_date(self) -> str:
        return self.due_date.strftime("%b %d, %Y %H:%M")

    def is_overdue(self, now: datetime | None = None) -> bool:
        now = now or datetime.now()
        return not self.is_completed and self.due_date < now

    def is_due_today(self, today: date | None = None) -> bool:
        return self.due_date.date() == (today or date.today())

    def is_due_tomorrow(self, today: date | None = None) -> bool:
        return (self.due_date.date() - (today or date.today())).days == 1

    def toggle_completion(self, now: datetime | None = None) -> None:
        self.is_completed = not self.is_completed
        self.completed_date = (now or datetime.now()) if self.is_completed else None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Assignment:
        assignment_id = str(d.get("id") or new_id())
        target_value = d.get("targetValue")
        is_completed = bool(d.get("isCompleted", False))
        return cls(
            id=assignment_id,
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            due_date=parse_timestamp(d.get("dueDate")) or datetime.now(),
            created_date=parse_timestamp(d.get("createdDate")) or datetime.now(),
            is_completed=is_completed,
            completed_date=_repair_stamp(
                "Assignment", assignment_id, is_completed, parse_timestamp(d.get("completedDate"))
            ),
            priority=Priority.parse(d.get("priority")),
            subject=str(d.get("subject", "") or ""),
            tags=[str(t) for t in (d.get("tags") or [])],
            notes=str(d.get("notes", "") or ""),
            target_value=float(target_value) if target_value is not None else None,
            target_unit=TargetUnit.parse(d.get("targetUnit")),
            color_code=d.get("colorCode"),
            points_awarded=bool(d.get("pointsAwarded", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": _iso(self.due_date),
            "createdDate": _iso(self.created_date),
            "isCompleted": self.is_completed,
            "completedDate": _iso(self.completed_date),
            "priority": self.priority.value,
            "subject": self.subject,
            "tags": list(self.tags),
        }
        if self.notes:
            d["notes"] = self.notes
        if self.target_value is not None:
            d["targetValue"] = self.target_value
            d["targetUnit"] = self.target_unit.value
        if self.color_code:
            d["colorCode"] = self.color_code
        if self.points_awarded:
            d["pointsAwarded"] = True
        return d


# ── Aggregate document ────────────────────────────────────────


_SECTIONS: tuple[tuple[str, type], ...] = (
    ("projects", Project),
    ("habits", Habit),
    ("assignments", Assignment),
)


@dataclass
class ProgressFile:
    projects: list[Project] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    assignments: list[Assignment] = field(default_factory=list)
    # Raw records that failed to load, written back untouched on save.
    unreadable: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ProgressFile:
        """Load each record on its own; a broken record is set aside, not fatal."""
        progress = cls()
        if not d or not isinstance(d, dict):
            return progress
        for key, model in _SECTIONS:
            loaded = getattr(progress, key)
            for raw in d.get(key) or []:
                if not isinstance(raw, dict):
                    logger.warning("Skipping %s entry that is not a mapping: %r", key, raw)
                    continue
                try:
                    loaded.append(model.from_dict(raw))
                except (TypeError, ValueError) as e:
                    logger.warning("Setting aside unreadable %s record %s: %s", key, raw.get("id"), e)
                    progress.unreadable.setdefault(key, []).append(raw)
        return progress

    def to_dict(self) -> dict[str, Any]:
        return {
            key: [item.to_dict() for item in getattr(self, key)] + self.unreadable.get(key, [])
            for key, _ in _SECTIONS
        }

    def project_for(self, goal: Goal) -> Project | None:
        """Resolve a goal's back reference to its owning project."""
        if goal.project_id is None:
            return None
        for p in self.projects:
            if p.id == goal.project_id:
                return p
        return None
