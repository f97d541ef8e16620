"""Streak, completion-rate and reward-period arithmetic over calendar days.

Everything here is a pure function of a set of qualifying days, so the
values can never drift from the entry history they are computed from.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Protocol


class _Entry(Protocol):
    date: date
    value: float


ONE_DAY = timedelta(days=1)


def qualifying_days(entries: Iterable[_Entry], target_value: float) -> set[date]:
    """Distinct calendar days whose entry meets the target."""
    return {e.date for e in entries if e.value >= target_value}


def current_streak(days: set[date], today: date) -> int:
    """Consecutive qualifying days ending today, or yesterday if today is still open.

    An unfinished today does not break the streak; a missed yesterday does.
    """
    cursor = today if today in days else today - ONE_DAY
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= ONE_DAY
    return streak


def best_streak(days: Iterable[date]) -> int:
    """Longest run of consecutive days anywhere in the history."""
    ordered = sorted(set(days))
    if not ordered:
        return 0
    best = run = 1
    for prev, cur in zip(ordered, ordered[1:]):
        if (cur - prev).days == 1:
            run += 1
            best = max(best, run)
        else:
            run = 1
    return best


def completion_rate(completed_days: int, created: date, today: date) -> float:
    """Percentage of days since creation (inclusive) that qualified."""
    days_since = (today - created).days
    if days_since <= 0:
        return 100.0 if completed_days > 0 else 0.0
    return completed_days / (days_since + 1) * 100


def day_key(day: date) -> str:
    return day.isoformat()


def week_key(day: date) -> str:
    """ISO week label such as '2026-W07'."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"
