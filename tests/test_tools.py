"""Tests for goaltrack/tools.py: assistant tool handlers and registry."""

from datetime import datetime, timedelta

import pytest

from goaltrack.models import Assignment, Goal, Habit, Project, ProgressFile
from goaltrack.pauses import MemoryKeyValueStore, pause_for_today
from goaltrack.points import PointsLedger
from goaltrack.tools import (
    TOOLS,
    ToolCallTracker,
    ToolContext,
    call_tool,
    complete_assignment,
    complete_habit_today,
    complete_next_goal,
    create_assignment,
    create_project,
    get_assignments,
    get_habits,
    get_projects,
    get_upcoming_summary,
    parse_deadline,
    parse_due_date,
    pause_habit_today,
)
from goaltrack.values import Priority

NOW = datetime(2026, 2, 11, 10, 0)
TODAY = NOW.date()


def _ctx(progress: ProgressFile | None = None) -> ToolContext:
    saves = []
    ctx = ToolContext(
        progress=progress or ProgressFile(),
        pauses=MemoryKeyValueStore(),
        ledger=PointsLedger(),
        save=lambda: saves.append(1),
        clock=lambda: NOW,
    )
    ctx.saves = saves
    return ctx


def _run_habit(days_done: int = 2) -> Habit:
    habit = Habit(title="Morning Run", created_date=NOW - timedelta(days=10))
    for back in range(1, days_done + 1):
        habit.complete_today(today=TODAY - timedelta(days=back))
    return habit


def test_complete_habit_today():
    ctx = _ctx(ProgressFile(habits=[_run_habit()]))
    result = complete_habit_today(ctx, "run")
    assert result == "Completed 'Morning Run' for today! Streak: 3 days. +3 points!"
    assert ctx.saves == [1]
    assert ctx.ledger.remaining == 3
    assert ctx.tracker.calls == [("completeHabitToday", result)]


def test_complete_habit_today_already_done():
    ctx = _ctx(ProgressFile(habits=[_run_habit()]))
    complete_habit_today(ctx, "Morning Run")
    result = complete_habit_today(ctx, "morning run")
    assert result == "'Morning Run' is already completed for today."
    assert ctx.saves == [1]


def test_complete_habit_today_not_found_skips_terminated():
    habit = _run_habit()
    habit.terminate(NOW)
    ctx = _ctx(ProgressFile(habits=[habit]))
    assert complete_habit_today(ctx, "run") == "No active habit found matching 'run'."
    assert ctx.saves == []


def test_complete_habit_today_reports_milestone():
    habit = Habit(title="Stretch", max_completion_days=2, created_date=NOW - timedelta(days=3))
    habit.complete_today(today=TODAY - timedelta(days=1))
    ctx = _ctx(ProgressFile(habits=[habit]))
    result = complete_habit_today(ctx, "stretch")
    assert result.endswith(" Milestone reached: 2 days!")


def test_pause_habit_today():
    ctx = _ctx(ProgressFile(habits=[_run_habit()]))
    result = pause_habit_today(ctx, "run")
    assert result == "Paused 'Morning Run' for today. No streak penalty, it will resume automatically tomorrow."
    assert pause_habit_today(ctx, "run") == "'Morning Run' is already paused for today."
    assert pause_habit_today(ctx, "swim") == (
        "No habit found matching 'swim'. Please check the habit name and try again."
    )


def test_get_habits_status_markers():
    done = _run_habit()
    done.complete_today(today=TODAY)
    paused = Habit(title="Read", created_date=NOW - timedelta(days=5))
    ctx = _ctx(ProgressFile(habits=[done, paused]))
    pause_for_today(ctx.pauses, paused.id, TODAY)

    lines = get_habits(ctx).splitlines()
    assert lines == [
        "- Morning Run (streak: 3 days, target: 1 times) [done today]",
        "- Read (streak: 0 days, target: 1 times) [paused today]",
    ]
    assert get_habits(ctx, "completed-today").count("\n") == 0


def test_get_habits_caps_list():
    habits = [Habit(title=f"H{i}", created_date=NOW - timedelta(days=20 - i)) for i in range(12)]
    ctx = _ctx(ProgressFile(habits=habits))
    lines = get_habits(ctx, "all").splitlines()
    assert len(lines) == 11
    assert lines[-1] == "...and 2 more"


def test_get_habits_empty():
    assert get_habits(_ctx(), "active") == "No habits found for filter 'active'."


def test_create_project_spaces_goals():
    ctx = _ctx()
    result = create_project(ctx, "Garden", "2026-03-13", goals="Seeds, Beds,,Plant")
    assert result == "Created project 'Garden' with 3 goals, deadline Mar 13, 2026"

    project = ctx.progress.projects[0]
    assert [g.title for g in project.goals] == ["Seeds", "Beds", "Plant"]
    assert project.goals[-1].target_date == project.deadline
    assert project.goals[0].target_date == NOW + (project.deadline - NOW) / 3
    assert project.created_date == NOW


def test_create_project_rejects_blank_title():
    ctx = _ctx()
    assert create_project(ctx, " ", "next week").startswith("Could not create project:")
    assert ctx.progress.projects == []


def test_parse_deadline():
    assert parse_deadline("next week", NOW) == NOW + timedelta(weeks=1)
    assert parse_deadline("Next Month", NOW) == datetime(2026, 3, 11, 10, 0)
    assert parse_deadline("next year", NOW) == datetime(2027, 2, 11, 10, 0)
    assert parse_deadline("2026-04-01", NOW) == datetime(2026, 4, 1)
    assert parse_deadline("whenever", NOW) == datetime(2026, 3, 11, 10, 0)
    assert parse_deadline("next month", datetime(2026, 1, 31)) == datetime(2026, 2, 28)


def _thesis() -> Project:
    goals = [
        Goal(title="Outline", target_date=NOW - timedelta(days=1), sort_order=0),
        Goal(title="Draft", target_date=NOW + timedelta(days=1), sort_order=1),
    ]
    return Project(title="Thesis", deadline=NOW + timedelta(days=30), goals=goals)


def test_complete_next_goal():
    ctx = _ctx(ProgressFile(projects=[_thesis()]))
    assert complete_next_goal(ctx, "thesis") == (
        "Completed goal 'Outline' in 'Thesis' (50%). Next: Draft. +3 points!"
    )
    assert complete_next_goal(ctx, "thesis") == (
        "Completed goal 'Draft' in 'Thesis' (100%). Project complete! +3 points!"
    )
    assert complete_next_goal(ctx, "thesis") == "No incomplete project found matching 'thesis'."


def test_complete_next_goal_without_goals():
    ctx = _ctx(ProgressFile(projects=[Project(title="Move", deadline=NOW)]))
    assert complete_next_goal(ctx, "move") == "'Move' has no open goals."


def test_get_projects():
    late = Project(title="Taxes", deadline=NOW - timedelta(days=2))
    ctx = _ctx(ProgressFile(projects=[_thesis(), late]))
    assert get_projects(ctx).splitlines() == [
        "- Taxes (0%, 0/0 goals) [OVERDUE]",
        "- Thesis (0%, 0/2 goals) Next: Outline",
    ]


def test_upcoming_summary():
    habit = _run_habit()
    ctx = _ctx(ProgressFile(projects=[_thesis()], habits=[habit]))
    summary = get_upcoming_summary(ctx).splitlines()
    assert summary == [
        "OVERDUE (1): Outline",
        "Due tomorrow (1): Draft",
        "Active projects (1): Thesis (0%)",
        "Habits: 0/1 done today",
        "Pending habits: Morning Run",
        "Top streaks: Morning Run: 2 days",
    ]


def test_upcoming_summary_all_clear():
    assert get_upcoming_summary(_ctx()) == "All clear! No pending goals or habits."


def test_call_tool_dispatch():
    ctx = _ctx(ProgressFile(habits=[_run_habit()]))
    assert set(TOOLS) == {
        "completeHabitToday", "pauseHabitToday", "getHabits", "createProject",
        "completeNextGoal", "getProjects", "getUpcomingSummary",
        "createAssignment", "completeAssignment", "getAssignments",
    }
    assert call_tool(ctx, "getHabits", {"filter": "all"}).startswith("- Morning Run")
    with pytest.raises(ValueError):
        call_tool(ctx, "deleteEverything")


def test_tracker():
    tracker = ToolCallTracker()
    tracker.start_call("getHabits")
    assert tracker.active == "getHabits"
    tracker.record("getHabits", "ok")
    assert tracker.active is None
    assert tracker.calls == [("getHabits", "ok")]
    tracker.clear()
    assert tracker.calls == []


def test_for_workspace_persists(workspace):
    ctx = ToolContext.for_workspace(workspace)
    ctx.clock = lambda: NOW
    complete_habit_today(ctx, "morning run")

    reloaded = ToolContext.for_workspace(workspace)
    run = next(h for h in reloaded.progress.habits if h.id == "run")
    assert run.is_completed_today(TODAY)
    assert reloaded.ledger.remaining == 1 + 2


def test_milestone_hook_fires_once():
    habit = Habit(title="Stretch", max_completion_days=2, created_date=NOW - timedelta(days=3))
    habit.complete_today(today=TODAY - timedelta(days=1))
    ctx = _ctx(ProgressFile(habits=[habit]))
    fired = []
    ctx.fire = lambda hook_point, payload: fired.append(hook_point)

    complete_habit_today(ctx, "stretch")
    complete_habit_today(ctx, "stretch")
    assert fired == ["on_habit_complete", "on_milestone_reached"]


def test_parse_due_date():
    # NOW is a Wednesday
    assert parse_due_date("today", NOW) == datetime(2026, 2, 11, 23, 59)
    assert parse_due_date("Tomorrow", NOW) == datetime(2026, 2, 12, 23, 59)
    assert parse_due_date("next friday", NOW) == datetime(2026, 2, 13, 23, 59)
    assert parse_due_date("next wednesday", NOW) == datetime(2026, 2, 18, 23, 59)
    assert parse_due_date("next week", NOW) == datetime(2026, 2, 18, 23, 59)
    assert parse_due_date("2026-03-01", NOW) == datetime(2026, 3, 1, 23, 59)
    assert parse_due_date("2026-03-01T09:30:00", NOW) == datetime(2026, 3, 1, 9, 30)
    assert parse_due_date("someday", NOW) == datetime(2026, 2, 12, 23, 59)


def _assignments() -> list[Assignment]:
    return [
        Assignment(title="Essay draft", due_date=NOW + timedelta(days=1), subject="English"),
        Assignment(title="Problem set", due_date=NOW - timedelta(hours=2), priority=Priority.HIGH),
        Assignment(title="Reading log", due_date=NOW + timedelta(hours=5)),
    ]


def test_create_assignment():
    ctx = _ctx()
    result = create_assignment(ctx, "Lab report", "tomorrow", priority="urgent", subject="Chemistry")
    assert result == "Created 'Lab report' due Feb 12, 2026 23:59 (Urgent)"
    lab = ctx.progress.assignments[0]
    assert lab.subject == "Chemistry"
    assert lab.created_date == NOW
    assert ctx.saves == [1]

    assert create_assignment(ctx, "Quiz", "2026-02-20", priority="whenever").endswith("(Default)")
    assert create_assignment(ctx, "  ", "today").startswith("Could not create assignment:")


def test_complete_assignment():
    ctx = _ctx(ProgressFile(assignments=_assignments()))
    assert complete_assignment(ctx, "essay") == "Completed 'Essay draft'. +1 point!"
    assert ctx.ledger.remaining == 1
    assert complete_assignment(ctx, "essay") == "No incomplete assignment found matching 'essay'."

    essay = ctx.progress.assignments[0]
    essay.toggle_completion(NOW)
    assert complete_assignment(ctx, "essay") == "Completed 'Essay draft'."
    assert ctx.ledger.remaining == 1


def test_get_assignments_filters():
    assignments = _assignments()
    assignments[0].toggle_completion(NOW)
    ctx = _ctx(ProgressFile(assignments=assignments))

    assert get_assignments(ctx).splitlines() == [
        "- Problem set (High), due Feb 11, 2026 08:00 [OVERDUE]",
        "- Reading log, due Feb 11, 2026 15:00",
    ]
    assert get_assignments(ctx, "all").splitlines()[-1] == "- Essay draft, due Feb 12, 2026 10:00 [done]"
    assert get_assignments(ctx, "overdue").count("\n") == 0
    assert get_assignments(ctx, "today").count("\n") == 1
    assert ctx.tracker.calls[0] == ("getAssignments", "2 assignment(s) found")

    empty = _ctx()
    assert get_assignments(empty, "overdue") == "No assignments found for filter 'overdue'."


def test_upcoming_summary_includes_assignments():
    ctx = _ctx(ProgressFile(projects=[_thesis()], assignments=_assignments()))
    summary = get_upcoming_summary(ctx).splitlines()
    assert summary[:3] == [
        "OVERDUE (2): Outline, Problem set",
        "Due today (1): Reading log",
        "Due tomorrow (2): Draft, Essay draft",
    ]
