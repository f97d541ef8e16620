"""Shared test fixtures for goaltrack tests."""

from __future__ import annotations

import os
from datetime import date, datetime
from pathlib import Path

import pytest
import yaml

TODAY = date(2026, 2, 11)
NOW = datetime(2026, 2, 11, 10, 0)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with standard structure."""
    root = tmp_path / "workspace"
    (root / "planner").mkdir(parents=True)

    # Profile
    profile = {
        "timezone": "UTC",
        "max_completion_days": 30,
    }
    (root / "planner" / "profile.yaml").write_text(
        yaml.dump(profile, default_flow_style=False), encoding="utf-8"
    )

    # Progress
    progress = {
        "projects": [
            {
                "id": "thesis",
                "title": "Thesis",
                "description": "Write the thesis",
                "createdDate": "2026-01-01T09:00:00",
                "deadline": "2026-06-30T00:00:00",
                "isCompleted": False,
                "completedDate": None,
                "subject": "Research",
                "goals": [
                    {
                        "id": "outline",
                        "title": "Outline",
                        "targetDate": "2026-02-01T00:00:00",
                        "isCompleted": True,
                        "completedDate": "2026-01-30T18:00:00",
                        "sortOrder": 0,
                        "priority": "High",
                    },
                    {
                        "id": "draft",
                        "title": "First draft",
                        "targetDate": "2026-04-01T00:00:00",
                        "isCompleted": False,
                        "completedDate": None,
                        "sortOrder": 1,
                        "priority": "Medium",
                    },
                ],
            },
            {
                "id": "move",
                "title": "Move flat",
                "createdDate": "2026-01-15T09:00:00",
                "deadline": "2026-03-01T00:00:00",
                "goals": [],
            },
        ],
        "habits": [
            {
                "id": "run",
                "title": "Morning run",
                "targetValue": 5,
                "unit": "km",
                "frequency": "Daily",
                "maxCompletionDays": 30,
                "createdDate": "2026-02-01T08:00:00",
                "entries": [
                    {"id": "r1", "date": "2026-02-08", "value": 5},
                    {"id": "r2", "date": "2026-02-09", "value": 6},
                    {"id": "r3", "date": "2026-02-10", "value": 5},
                ],
            },
            {
                "id": "read",
                "title": "Read",
                "targetValue": 20,
                "unit": "pages",
                "createdDate": "2026-02-05T08:00:00",
                "entries": [],
            },
            {
                "id": "old",
                "title": "Old habit",
                "createdDate": "2025-12-01T08:00:00",
                "isTerminated": True,
                "terminatedDate": "2026-01-10T08:00:00",
            },
        ],
        "assignments": [
            {
                "id": "essay",
                "title": "Essay draft",
                "dueDate": "2026-02-12T23:59:00",
                "createdDate": "2026-02-01T09:00:00",
                "priority": "High",
                "subject": "English",
                "tags": ["writing"],
            },
            {
                "id": "lab",
                "title": "Lab report",
                "dueDate": "2026-02-09T17:00:00",
                "createdDate": "2026-02-01T09:00:00",
                "isCompleted": True,
                "completedDate": "2026-02-09T12:00:00",
            },
        ],
    }
    (root / "planner" / "progress.yaml").write_text(
        yaml.dump(progress, default_flow_style=False, sort_keys=False), encoding="utf-8"
    )

    # Set env var
    os.environ["GOALTRACK_ROOT"] = str(root)
    yield root
    # Cleanup
    if "GOALTRACK_ROOT" in os.environ:
        del os.environ["GOALTRACK_ROOT"]
