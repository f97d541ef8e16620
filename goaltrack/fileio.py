"""Atomic JSON/YAML document I/O for the goaltrack workspace."""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml


def read_json(path: Path) -> dict[str, Any]:
    """Load a JSON object from *path*; a missing or blank file reads as {}."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    data = json.loads(text)
    return data if isinstance(data, dict) else {}


def read_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*; anything else reads as {}."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


def _replace_atomically(path: Path, payload: str, suffix: str) -> None:
    """Write *payload* next to *path* under an exclusive lock, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, scratch = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        os.replace(scratch, path)
    except Exception:
        if os.path.exists(scratch):
            os.unlink(scratch)
        raise


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    _replace_atomically(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", ".json")


def write_yaml_atomic(path: Path, data: dict[str, Any]) -> None:
    payload = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    _replace_atomically(path, payload, ".yaml")
