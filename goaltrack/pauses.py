"""Day-scoped "pause for today" flags for habits.

A pause is a key ``pause:{habit_id}:{yyyy-MM-dd}`` in a key/value side table.
It expires by itself: lookups always build the key from the current date,
so yesterday's key simply stops matching.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Protocol

from goaltrack.fileio import read_json, write_json_atomic
from goaltrack.models import Habit
from goaltrack.workspace import pauses_path

logger = logging.getLogger(__name__)

KEY_PREFIX = "pause:"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryKeyValueStore:
    """Dict-backed store for tests and embedding hosts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonKeyValueStore:
    """Store persisted as a flat JSON object; every write is atomic."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_workspace(cls, root: Path | None = None) -> JsonKeyValueStore:
        return cls(pauses_path(root))

    def _load(self) -> dict[str, str]:
        return {str(k): str(v) for k, v in read_json(self.path).items()}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        write_json_atomic(self.path, data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            write_json_atomic(self.path, data)

    def keys(self) -> list[str]:
        return list(self._load())


def pause_key(habit_id: str, day: date) -> str:
    return f"{KEY_PREFIX}{habit_id}:{day.strftime('%Y-%m-%d')}"


def is_paused_today(store: KeyValueStore, habit_id: str, today: date | None = None) -> bool:
    return store.get(pause_key(habit_id, today or date.today())) is not None


def pause_for_today(store: KeyValueStore, habit_id: str, today: date | None = None) -> None:
    today = today or date.today()
    store.set(pause_key(habit_id, today), datetime.now().isoformat(timespec="seconds"))
    logger.info("Paused habit %s for %s", habit_id, today.isoformat())


def unpause_today(store: KeyValueStore, habit_id: str, today: date | None = None) -> None:
    store.delete(pause_key(habit_id, today or date.today()))


def prune_expired_pauses(store: KeyValueStore, today: date | None = None) -> list[str]:
    """Delete pause keys dated before *today*. Returns the removed keys."""
    today = today or date.today()
    removed = []
    for key in store.keys():
        if not key.startswith(KEY_PREFIX):
            continue
        stamp = key.rsplit(":", 1)[-1]
        try:
            day = date.fromisoformat(stamp)
        except ValueError:
            continue
        if day < today:
            store.delete(key)
            removed.append(key)
    return removed


def needs_attention(habit: Habit, store: KeyValueStore, today: date | None = None) -> bool:
    """Active, not yet done and not paused today."""
    today = today or date.today()
    return (
        habit.is_active
        and not habit.is_completed_today(today)
        and not is_paused_today(store, habit.id, today)
    )
