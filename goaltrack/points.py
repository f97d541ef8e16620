"""Reward points: once-per-period transactions and streak bonuses.

Every award is keyed by (source type, source id, period key); a second award
for the same key is refused, so callers can award freely after each
completion without double counting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from goaltrack.fileio import read_json, write_json_atomic
from goaltrack.models import Assignment, Goal, Habit, new_id, parse_timestamp
from goaltrack.streaks import day_key, week_key
from goaltrack.values import HabitFrequency
from goaltrack.workspace import points_path

logger = logging.getLogger(__name__)

HABIT_POINTS = 1
GOAL_POINTS = 3
ASSIGNMENT_POINTS = 1

# (streak length, bonus points)
STREAK_MILESTONES: list[tuple[int, int]] = [
    (3, 2), (5, 5), (10, 12), (15, 20), (25, 30), (50, 200), (100, 1000),
]


@dataclass
class PointsTransaction:
    source_type: str
    source_id: str
    period_key: str
    points: int
    source_title: str = ""
    awarded_date: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_id)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PointsTransaction:
        return cls(
            id=str(d.get("id") or new_id()),
            source_type=str(d.get("sourceType", "")),
            source_id=str(d.get("sourceId", "")),
            period_key=str(d.get("periodKey", "")),
            points=int(d.get("points", 0)),
            source_title=str(d.get("sourceTitle", "")),
            awarded_date=parse_timestamp(d.get("awardedDate")) or datetime.now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sourceType": self.source_type,
            "sourceId": self.source_id,
            "periodKey": self.period_key,
            "points": self.points,
            "sourceTitle": self.source_title,
            "awardedDate": self.awarded_date.isoformat(timespec="seconds"),
        }


@dataclass
class PointsLedger:
    total_earned: int = 0
    total_spent: int = 0
    transactions: list[PointsTransaction] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return self.total_earned - self.total_spent

    def has_award(self, source_type: str, source_id: str, period_key: str) -> bool:
        return any(
            t.source_type == source_type and t.source_id == source_id and t.period_key == period_key
            for t in self.transactions
        )

    def award(
        self,
        source_type: str,
        source_id: str,
        period_key: str,
        points: int,
        source_title: str = "",
        now: datetime | None = None,
    ) -> bool:
        """Record an award unless this key was already paid. Returns True if paid."""
        if self.has_award(source_type, source_id, period_key):
            return False
        self.transactions.append(PointsTransaction(
            source_type=source_type,
            source_id=source_id,
            period_key=period_key,
            points=points,
            source_title=source_title,
            awarded_date=now or datetime.now(),
        ))
        self.total_earned += points
        logger.info("Awarded %d points for %s %r (%s)", points, source_type, source_title, period_key)
        return True

    def spend(self, points: int) -> None:
        if points <= 0:
            raise ValueError("points to spend must be positive")
        if points > self.remaining:
            raise ValueError(f"Not enough points: {self.remaining} available, {points} requested")
        self.total_spent += points

    def points_for_day(self, day: date) -> int:
        return sum(t.points for t in self.transactions if t.awarded_date.date() == day)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PointsLedger:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            total_earned=int(d.get("totalEarned", 0)),
            total_spent=int(d.get("totalSpent", 0)),
            transactions=[PointsTransaction.from_dict(t) for t in (d.get("transactions") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalEarned": self.total_earned,
            "totalSpent": self.total_spent,
            "transactions": [t.to_dict() for t in self.transactions],
        }


def load_ledger(root: Path | None = None) -> PointsLedger:
    return PointsLedger.from_dict(read_json(points_path(root)))


def save_ledger(ledger: PointsLedger, root: Path | None = None) -> None:
    write_json_atomic(points_path(root), ledger.to_dict())


# ── Award rules ───────────────────────────────────────────────


def habit_period_key(habit: Habit, today: date) -> str:
    """One award per day for daily habits, per ISO week for weekly ones."""
    if habit.frequency is HabitFrequency.WEEKLY:
        return week_key(today)
    return day_key(today)


def award_habit(
    ledger: PointsLedger, habit: Habit, today: date, now: datetime | None = None
) -> int:
    """Pay the habit completion point plus any newly reached streak bonuses.

    Returns the total points paid by this call (0 when already claimed or
    the habit is not completed today).
    """
    if not habit.is_completed_today(today):
        return 0
    if not ledger.award("habit", habit.id, habit_period_key(habit, today), HABIT_POINTS, habit.title, now):
        return 0
    entry = habit.entry_for(today)
    if entry is not None:
        entry.points_awarded = True

    paid = HABIT_POINTS
    streak = habit.current_streak(today)
    for length, bonus in STREAK_MILESTONES:
        if streak >= length and ledger.award(
            "streak", habit.id, f"milestone-{length}", bonus, f"{habit.title} ({length}-day streak)", now
        ):
            paid += bonus
    return paid


def award_goal(ledger: PointsLedger, goal: Goal, now: datetime | None = None) -> int:
    """Pay the one-off goal completion points."""
    if not goal.is_completed:
        return 0
    if not ledger.award("goal", goal.id, "once", GOAL_POINTS, goal.title, now):
        return 0
    goal.points_awarded = True
    return GOAL_POINTS


def award_assignment(ledger: PointsLedger, assignment: Assignment, now: datetime | None = None) -> int:
    """Pay the one-off assignment point; re-completing never pays again."""
    if not assignment.is_completed:
        return 0
    if not ledger.award("assignment", assignment.id, "once", ASSIGNMENT_POINTS, assignment.title, now):
        return 0
    assignment.points_awarded = True
    return ASSIGNMENT_POINTS
