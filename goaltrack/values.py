"""Value types shared by goals, projects and habits.

Each enum stores the raw string that appears on disk and carries its own
display table (rank, color, unit symbol, category).
"""

from __future__ import annotations

from enum import Enum


class Priority(str, Enum):
    NONE = "Default"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    @classmethod
    def parse(cls, raw: str | Priority | None) -> Priority:
        """Accept the stored value or the member name, case-insensitively."""
        if isinstance(raw, cls):
            return raw
        text = (raw or "").strip().lower()
        if text in ("", "none", "default"):
            return cls.NONE
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Invalid priority: {raw!r}")

    @property
    def rank(self) -> int:
        """0 for no priority up to 4 for urgent."""
        return _PRIORITY_RANK[self]

    @property
    def color(self) -> str:
        return _PRIORITY_COLOR[self]


_PRIORITY_RANK = {
    Priority.NONE: 0,
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}

_PRIORITY_COLOR = {
    Priority.NONE: "gray",
    Priority.LOW: "green",
    Priority.MEDIUM: "yellow",
    Priority.HIGH: "orange",
    Priority.URGENT: "red",
}


class UnitCategory(str, Enum):
    DISTANCE = "Distance"
    TIME = "Time"
    COUNT = "Count"
    VOLUME = "Volume"
    NONE = "None"


class TargetUnit(str, Enum):
    # distance
    KILOMETER = "km"
    METER = "m"
    MILE = "mi"
    # time
    HOUR = "hr"
    MINUTE = "min"
    SECOND = "sec"
    # count
    PAGES = "pages"
    TIMES = "times"
    REPS = "reps"
    SETS = "sets"
    # volume
    LITER = "L"
    MILLILITER = "mL"
    CUPS = "cups"
    GLASSES = "glasses"

    NONE = ""

    @classmethod
    def parse(cls, raw: str | TargetUnit | None) -> TargetUnit:
        """Accept a unit symbol (case-sensitive, since m != M) or member name."""
        if isinstance(raw, cls):
            return raw
        text = (raw or "").strip()
        if not text or text.lower() == "none":
            return cls.NONE
        for member in cls:
            if text == member.value:
                return member
        for member in cls:
            if text.lower() == member.name.lower():
                return member
        raise ValueError(f"Invalid unit: {raw!r}")

    @property
    def display_name(self) -> str:
        return _UNIT_DISPLAY[self]

    @property
    def category(self) -> UnitCategory:
        return _UNIT_CATEGORY[self]

    def format(self, value: float) -> str:
        """'3 km', '2.5 hr'; always empty for the unitless case."""
        if self is TargetUnit.NONE:
            return ""
        if float(value).is_integer():
            shown = f"{value:.0f}"
        else:
            shown = f"{value:.1f}"
        return f"{shown} {self.value}"


_UNIT_DISPLAY = {
    TargetUnit.KILOMETER: "Kilometers",
    TargetUnit.METER: "Meters",
    TargetUnit.MILE: "Miles",
    TargetUnit.HOUR: "Hours",
    TargetUnit.MINUTE: "Minutes",
    TargetUnit.SECOND: "Seconds",
    TargetUnit.PAGES: "Pages",
    TargetUnit.TIMES: "Times",
    TargetUnit.REPS: "Repetitions",
    TargetUnit.SETS: "Sets",
    TargetUnit.LITER: "Liters",
    TargetUnit.MILLILITER: "Milliliters",
    TargetUnit.CUPS: "Cups",
    TargetUnit.GLASSES: "Glasses",
    TargetUnit.NONE: "None",
}

_UNIT_CATEGORY = {
    TargetUnit.KILOMETER: UnitCategory.DISTANCE,
    TargetUnit.METER: UnitCategory.DISTANCE,
    TargetUnit.MILE: UnitCategory.DISTANCE,
    TargetUnit.HOUR: UnitCategory.TIME,
    TargetUnit.MINUTE: UnitCategory.TIME,
    TargetUnit.SECOND: UnitCategory.TIME,
    TargetUnit.PAGES: UnitCategory.COUNT,
    TargetUnit.TIMES: UnitCategory.COUNT,
    TargetUnit.REPS: UnitCategory.COUNT,
    TargetUnit.SETS: UnitCategory.COUNT,
    TargetUnit.LITER: UnitCategory.VOLUME,
    TargetUnit.MILLILITER: UnitCategory.VOLUME,
    TargetUnit.CUPS: UnitCategory.VOLUME,
    TargetUnit.GLASSES: UnitCategory.VOLUME,
    TargetUnit.NONE: UnitCategory.NONE,
}


class HabitFrequency(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"

    @classmethod
    def parse(cls, raw: str | HabitFrequency | None) -> HabitFrequency:
        if isinstance(raw, cls):
            return raw
        text = (raw or "").strip().lower()
        if not text:
            return cls.DAILY
        for member in cls:
            if text == member.value.lower():
                return member
        raise ValueError(f"Invalid frequency: {raw!r}")
