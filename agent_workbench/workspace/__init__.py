"""Workspace / tab / pane model."""

from agent_workbench.workspace.git_state import GitState, WorktreeInfo
from agent_workbench.workspace.models import Pane, Tab, Workspace, WorkspaceSnapshot
from agent_workbench.workspace.persistence import WorkspaceFile, WorkspacePersistence
from agent_workbench.workspace.store import WorkspaceStore

__all__ = [
    "GitState",
    "Pane",
    "Tab",
    "Workspace",
    "WorkspaceFile",
    "WorkspacePersistence",
    "WorkspaceSnapshot",
    "WorkspaceStore",
    "WorktreeInfo",
]
