"""goaltrack core library: goals, projects, habits, assignments and their progress engine.

Public API re-exports for convenient imports:
    from goaltrack import Project, Goal, Habit, load_progress, ...
"""

# Workspace & paths
from goaltrack.workspace import (
    workspace_root,
    get_user_timezone,
    default_max_completion_days,
    today_local,
    now_local,
    profile_path,
    progress_path,
    points_path,
    pauses_path,
    agent_context_path,
    hooks_config_path,
)

# File I/O
from goaltrack.fileio import (
    read_json,
    read_yaml,
    write_json_atomic,
    write_yaml_atomic,
)

# Value types
from goaltrack.values import (
    Priority,
    TargetUnit,
    UnitCategory,
    HabitFrequency,
)

# Models
from goaltrack.models import (
    Goal,
    Project,
    HabitEntry,
    Habit,
    Assignment,
    ProgressFile,
    toggle_goal_completion,
)

# Streak arithmetic
from goaltrack.streaks import (
    qualifying_days,
    current_streak,
    best_streak,
    completion_rate,
)

# Store
from goaltrack.store import (
    validate_goal,
    validate_project,
    validate_habit,
    validate_assignment,
    load_progress,
    save_progress,
    find_project,
    find_habit,
    find_goal,
    find_assignment,
    match_by_title,
    active_habits,
    incomplete_projects,
    incomplete_assignments,
    create_project,
    add_goal,
    delete_project,
    delete_goal,
    create_habit,
    delete_habit,
    create_assignment,
    delete_assignment,
)

# Pauses
from goaltrack.pauses import (
    KeyValueStore,
    MemoryKeyValueStore,
    JsonKeyValueStore,
    pause_key,
    is_paused_today,
    pause_for_today,
    unpause_today,
    prune_expired_pauses,
    needs_attention,
)

# Points
from goaltrack.points import (
    PointsLedger,
    PointsTransaction,
    load_ledger,
    save_ledger,
    award_habit,
    award_goal,
    award_assignment,
)

# Hooks
from goaltrack.hooks import run_hooks

# Assistant tools
from goaltrack.tools import (
    ToolCallTracker,
    ToolContext,
    TOOLS,
    call_tool,
)

# Agent context
from goaltrack.agent_context import generate_agent_context
