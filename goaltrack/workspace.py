"""Workspace root, profile settings, clock and path helpers for goaltrack."""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from goaltrack.fileio import read_yaml

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMPLETION_DAYS = 60


def workspace_root() -> Path:
    """Directory holding planner/ (overridable with GOALTRACK_ROOT)."""
    return Path(
        os.environ.get("GOALTRACK_ROOT", str(Path.home() / "goaltrack"))
    ).expanduser().resolve()


def load_profile(root: Path | None = None) -> dict:
    return read_yaml(profile_path(root))


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Timezone from profile.yaml; UTC when unset or unknown."""
    name = load_profile(root).get("timezone")
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r in profile, falling back to UTC", name)
        return ZoneInfo("UTC")


def default_max_completion_days(root: Path | None = None) -> int:
    raw = load_profile(root).get("max_completion_days", DEFAULT_MAX_COMPLETION_DAYS)
    try:
        days = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_MAX_COMPLETION_DAYS
    return days if days > 0 else DEFAULT_MAX_COMPLETION_DAYS


def now_local(root: Path | None = None) -> datetime:
    """Current wall-clock time in the user's timezone, without tzinfo.

    Entities store naive local timestamps so that calendar-day comparisons
    use local day boundaries.
    """
    return datetime.now(get_user_timezone(root)).replace(tzinfo=None)


def today_local(root: Path | None = None) -> date:
    return now_local(root).date()


# ── Path helpers ──────────────────────────────────────────────

def _planner_dir(root: Path | None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "planner"


def profile_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "profile.yaml"


def progress_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "progress.yaml"


def points_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "points.json"


def pauses_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "pauses.json"


def agent_context_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "agent_context.json"


def hooks_config_path(root: Path | None = None) -> Path:
    return _planner_dir(root) / "hooks.yaml"
