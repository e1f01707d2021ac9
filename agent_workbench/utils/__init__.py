"""Utility functions for agent-workbench."""

from agent_workbench.utils.helpers import (
    encode_project_path,
    ensure_dir,
    read_json,
    write_json_atomic,
)
from agent_workbench.utils.timers import KeyedTimers, LoopScheduler, Scheduler

__all__ = [
    "encode_project_path",
    "ensure_dir",
    "read_json",
    "write_json_atomic",
    "KeyedTimers",
    "LoopScheduler",
    "Scheduler",
]
