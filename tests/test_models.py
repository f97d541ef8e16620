"""Tests for goaltrack/models.py: goals, projects and the completion cascade."""

from datetime import datetime, timedelta

import pytest

from goaltrack.models import Assignment, Goal, Project, ProgressFile, toggle_goal_completion
from goaltrack.values import Priority, TargetUnit

NOW = datetime(2026, 2, 11, 10, 0)


def _thesis() -> tuple[Project, list[Goal]]:
    goals = [
        Goal(title=f"G{i}", target_date=NOW + timedelta(days=10 * i), sort_order=i)
        for i in range(1, 4)
    ]
    project = Project(title="Thesis", deadline=NOW + timedelta(days=60), goals=goals)
    return project, goals


def test_cascade_walkthrough():
    project, (g1, g2, g3) = _thesis()
    assert project.next_goal is g1
    assert project.progress_percentage == 0

    g1.toggle_completion(project, NOW)
    assert project.next_goal is g2
    assert round(project.progress_percentage, 2) == 33.33

    g2.toggle_completion(project, NOW)
    assert project.next_goal is g3
    assert round(project.progress_percentage, 2) == 66.67

    g3.toggle_completion(project, NOW)
    assert project.is_completed is True
    assert project.completed_date == NOW
    assert project.next_goal is None
    assert project.progress_percentage == 100


def test_uncompleting_one_goal_reopens_project():
    project, (g1, g2, g3) = _thesis()
    for g in (g3, g1, g2):
        g.toggle_completion(project, NOW)
    assert project.is_completed

    g2.toggle_completion(project, NOW)
    assert project.is_completed is False
    assert project.completed_date is None
    assert project.next_goal is g2
    assert g2.completed_date is None


def test_goal_toggle_sets_and_clears_completed_date():
    project, (g1, _, _) = _thesis()
    g1.toggle_completion(project, NOW)
    assert g1.is_completed and g1.completed_date == NOW
    g1.toggle_completion(project, NOW)
    assert not g1.is_completed and g1.completed_date is None


def test_empty_project_never_auto_completes():
    project = Project(title="Empty", deadline=NOW)
    assert project.state == "no_goals"
    assert project.progress_percentage == 0.0
    assert project.next_goal is None
    assert project.is_completed is False


def test_explicit_project_toggle():
    project = Project(title="Empty", deadline=NOW)
    project.toggle_completion(NOW)
    assert project.is_completed and project.completed_date == NOW
    assert project.state == "completed"
    project.toggle_completion(NOW)
    assert not project.is_completed and project.completed_date is None


def test_toggle_with_foreign_project_raises():
    project, (g1, _, _) = _thesis()
    other = Project(title="Other", deadline=NOW)
    with pytest.raises(ValueError):
        g1.toggle_completion(other, NOW)
    assert g1.is_completed is False


def test_toggle_goal_unknown_id():
    project, _ = _thesis()
    with pytest.raises(KeyError):
        project.toggle_goal("missing", NOW)


def test_next_goal_tie_breaks_on_sort_order():
    due = NOW + timedelta(days=5)
    late = Goal(title="B", target_date=due, sort_order=2)
    early = Goal(title="A", target_date=due, sort_order=1)
    project = Project(title="P", deadline=NOW, goals=[late, early])
    assert project.next_goal is early
    assert project.sorted_goals == [early, late]


def test_add_open_goal_reopens_completed_project():
    project, goals = _thesis()
    for g in goals:
        g.toggle_completion(project, NOW)
    assert project.is_completed

    extra = project.add_goal(Goal(title="Appendix", target_date=NOW + timedelta(days=40)))
    assert extra.project_id == project.id
    assert extra.sort_order == 4
    assert project.is_completed is False


def test_remove_last_open_goal_completes_project():
    project, (g1, g2, g3) = _thesis()
    g1.toggle_completion(project, NOW)
    g2.toggle_completion(project, NOW)
    removed = project.remove_goal(g3.id, NOW)
    assert removed is g3
    assert removed.project_id is None
    assert project.is_completed and project.completed_date == NOW


def test_add_goal_owned_elsewhere_is_rejected():
    project, (g1, _, _) = _thesis()
    other = Project(title="Other", deadline=NOW)
    with pytest.raises(ValueError):
        other.add_goal(g1)


def test_reorder_goals():
    project, (g1, g2, g3) = _thesis()
    project.reorder_goals([g3.id, "ghost", g1.id])
    assert (g3.sort_order, g1.sort_order, g2.sort_order) == (0, 1, 2)


def test_overdue():
    goal = Goal(title="Late", target_date=NOW - timedelta(days=1))
    assert goal.is_overdue(NOW)
    goal.toggle_completion(now=NOW)
    assert not goal.is_overdue(NOW)
    project = Project(title="P", deadline=NOW - timedelta(hours=1))
    assert project.is_overdue(NOW)


def test_goal_invariants():
    with pytest.raises(ValueError):
        Goal(title="  ", target_date=NOW)
    with pytest.raises(ValueError):
        Goal(title="X", target_date=NOW, is_completed=True)
    with pytest.raises(ValueError):
        Project(title="X", deadline=NOW, completed_date=NOW)


def test_goal_formatting():
    goal = Goal(
        title="Long run", target_date=datetime(2026, 3, 5), target_value=21.1, target_unit=TargetUnit.KILOMETER
    )
    assert goal.formatted_target == "21.1 km"
    assert goal.formatted_target_date == "Mar 05, 2026"
    assert Goal(title="Plain", target_date=NOW).formatted_target is None


def test_project_from_dict_and_back():
    data = {
        "id": "p1",
        "title": "Thesis",
        "deadline": "2026-06-30T00:00:00",
        "createdDate": "2026-01-01T09:00:00",
        "goals": [
            {"id": "g1", "title": "Outline", "targetDate": "2026-02-01", "priority": "High",
             "targetValue": 10, "targetUnit": "pages"},
        ],
        "unknownKey": "ignored",
    }
    project = Project.from_dict(data)
    goal = project.goals[0]
    assert goal.project_id == "p1"
    assert goal.priority is Priority.HIGH
    assert goal.target_unit is TargetUnit.PAGES
    assert goal.target_date == datetime(2026, 2, 1)

    out = project.to_dict()
    assert out["deadline"] == "2026-06-30T00:00:00"
    assert out["goals"][0]["priority"] == "High"
    assert out["goals"][0]["targetUnit"] == "pages"
    assert "projectId" not in out["goals"][0]
    assert "unknownKey" not in out


def test_progress_file_resolves_goal_owner():
    pf = ProgressFile.from_dict({
        "projects": [{"id": "p1", "title": "A", "deadline": "2026-03-01", "goals": [
            {"id": "g1", "title": "One", "targetDate": "2026-02-20"},
        ]}],
    })
    goal = pf.projects[0].goals[0]
    assert pf.project_for(goal) is pf.projects[0]
    assert ProgressFile.from_dict(None).projects == []


def test_toggle_goal_completion_function():
    project, goals = _thesis()
    for g in reversed(goals):
        assert toggle_goal_completion(g, project, NOW) is g
    assert project.is_completed
    assert project.toggle_goal(goals[0].id, NOW) is goals[0]
    assert not project.is_completed


def test_project_completion_must_match_goals():
    done = Goal(title="Done", target_date=NOW, is_completed=True, completed_date=NOW)
    with pytest.raises(ValueError):
        Project(title="P", deadline=NOW, goals=[done])

    open_goal = Goal(title="Open", target_date=NOW)
    with pytest.raises(ValueError):
        Project(title="P", deadline=NOW, is_completed=True, completed_date=NOW, goals=[open_goal])


def test_explicit_toggle_refused_when_project_has_goals():
    project, _ = _thesis()
    with pytest.raises(ValueError):
        project.toggle_completion(NOW)
    assert project.is_completed is False


def test_project_from_dict_follows_goals():
    stale_open = Project.from_dict({
        "id": "p1", "title": "A", "deadline": "2026-03-01",
        "isCompleted": True, "completedDate": "2026-02-01T09:00:00",
        "goals": [{"id": "g1", "title": "One", "targetDate": "2026-02-20"}],
    })
    assert stale_open.is_completed is False
    assert stale_open.completed_date is None

    stale_done = Project.from_dict({
        "id": "p2", "title": "B", "deadline": "2026-03-01",
        "goals": [
            {"id": "g1", "title": "One", "targetDate": "2026-02-20",
             "isCompleted": True, "completedDate": "2026-02-03T09:00:00"},
            {"id": "g2", "title": "Two", "targetDate": "2026-02-21",
             "isCompleted": True, "completedDate": "2026-02-05T09:00:00"},
        ],
    })
    assert stale_done.state == "completed"
    assert stale_done.completed_date == datetime(2026, 2, 5, 9, 0)


def test_goal_from_dict_stamps_missing_completed_date():
    goal = Goal.from_dict({"title": "G", "targetDate": "2026-02-01", "isCompleted": True})
    assert goal.is_completed and goal.completed_date is not None
    stray = Goal.from_dict({"title": "G", "targetDate": "2026-02-01", "completedDate": "2026-02-01"})
    assert stray.completed_date is None


def test_add_goal_keeps_explicit_zero_sort_order():
    project, (g1, _, _) = _thesis()
    first = project.add_goal(Goal(title="Kickoff", target_date=g1.target_date, sort_order=0))
    assert first.sort_order == 0
    assert project.next_goal is first


def test_unordered_goals_are_numbered_on_attach():
    a = Goal(title="A", target_date=NOW)
    b = Goal(title="B", target_date=NOW, sort_order=5)
    c = Goal(title="C", target_date=NOW)
    Project(title="P", deadline=NOW, goals=[a, b, c])
    assert (a.sort_order, b.sort_order, c.sort_order) == (6, 5, 7)
    assert Goal.from_dict({"title": "X", "targetDate": "2026-02-01", "sortOrder": 0}).sort_order == 0
    assert Goal.from_dict({"title": "X", "targetDate": "2026-02-01"}).sort_order is None


def test_progress_file_sets_aside_unreadable_records():
    raw_habit = {"id": "blank", "title": "  "}
    pf = ProgressFile.from_dict({
        "projects": [{"id": "p1", "title": "A", "deadline": "2026-03-01"}],
        "habits": [
            raw_habit,
            {"id": "old", "title": "Old", "isTerminated": True},
        ],
        "assignments": ["not a record"],
    })
    assert [h.id for h in pf.habits] == ["old"]
    assert pf.assignments == []
    assert pf.habits[0].terminated_date is not None
    assert pf.unreadable == {"habits": [raw_habit]}
    assert pf.to_dict()["habits"][-1] is raw_habit


def test_assignment_lifecycle():
    essay = Assignment(title="Essay", due_date=datetime(2026, 2, 12, 23, 59), priority=Priority.HIGH)
    assert essay.is_due_tomorrow(NOW.date())
    assert not essay.is_due_today(NOW.date())
    assert not essay.is_overdue(NOW)
    assert essay.is_overdue(datetime(2026, 2, 13))

    essay.toggle_completion(NOW)
    assert essay.is_completed and essay.completed_date == NOW
    assert not essay.is_overdue(datetime(2026, 2, 13))
    essay.toggle_completion(NOW)
    assert essay.completed_date is None

    with pytest.raises(ValueError):
        Assignment(title="", due_date=NOW)


def test_assignment_from_dict_and_back():
    assignment = Assignment.from_dict({
        "id": "a1", "title": "Lab report", "dueDate": "2026-02-20T17:00:00",
        "priority": "urgent", "subject": "Chemistry", "tags": ["lab", "group"],
        "targetValue": 4, "targetUnit": "pages",
    })
    assert assignment.priority is Priority.URGENT
    assert assignment.formatted_target == "4 pages"
    assert assignment.formatted_due_date == "Feb 20, 2026 17:00"

    out = assignment.to_dict()
    assert out["dueDate"] == "2026-02-20T17:00:00"
    assert out["tags"] == ["lab", "group"]
    assert out["priority"] == "Urgent"
    assert "pointsAwarded" not in out
