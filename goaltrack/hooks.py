"""Lifecycle hooks for goaltrack.

Hooks run shell commands when progress events happen. They are configured
in planner/hooks.yaml, one list of commands per hook point:

    on_habit_complete:
      - notify-send "habit done"
      - command: ./award.sh
        timeout: 10

Hook points:
- on_goal_complete, on_project_complete, on_assignment_complete
- on_habit_complete, on_milestone_reached, on_habit_terminated
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from goaltrack.fileio import read_yaml
from goaltrack.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = {
    "on_goal_complete",
    "on_project_complete",
    "on_assignment_complete",
    "on_habit_complete",
    "on_milestone_reached",
    "on_habit_terminated",
}

DEFAULT_TIMEOUT = 30
OUTPUT_CAP = 4096


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """Load hooks configuration from planner/hooks.yaml."""
    return read_yaml(hooks_config_path(root))


def _command_and_timeout(hook: Any) -> tuple[str, float]:
    if isinstance(hook, str):
        return hook, DEFAULT_TIMEOUT
    if isinstance(hook, dict):
        return str(hook.get("command", "")), float(hook.get("timeout", DEFAULT_TIMEOUT))
    return "", DEFAULT_TIMEOUT


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run every command registered for *hook_point*.

    The context is sent as JSON on stdin. Each result carries the exit code
    and capped stdout/stderr; a timeout or launch failure is reported with
    exit_code -1 and an error message instead of raising.
    """
    if hook_point not in VALID_HOOK_POINTS:
        logger.debug("Ignoring unknown hook point %s", hook_point)
        return []
    if root is None:
        root = workspace_root()

    hooks = load_hooks_config(root).get(hook_point) or []
    if not isinstance(hooks, list):
        logger.warning("hooks.yaml entry for %s is not a list", hook_point)
        return []

    payload = json.dumps(context, ensure_ascii=False, default=str)
    results = []
    for hook in hooks:
        command, timeout = _command_and_timeout(hook)
        if not command:
            continue

        result: dict[str, Any] = {"command": command, "hook_point": hook_point}
        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=payload,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(root),
            )
            result["exit_code"] = proc.returncode
            result["stdout"] = proc.stdout[:OUTPUT_CAP]
            result["stderr"] = proc.stderr[:OUTPUT_CAP]
            if proc.returncode != 0:
                logger.warning("Hook %r for %s exited with %d", command, hook_point, proc.returncode)
        except subprocess.TimeoutExpired:
            result["exit_code"] = -1
            result["error"] = f"Hook timed out after {timeout:g}s"
            logger.warning("Hook %r for %s timed out after %gs", command, hook_point, timeout)
        except OSError as e:
            result["exit_code"] = -1
            result["error"] = str(e)
            logger.warning("Hook %r for %s failed to start: %s", command, hook_point, e)

        results.append(result)

    return results
