"""Workspace snapshot persistence."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from agent_workbench.utils.helpers import read_json, write_json_atomic
from agent_workbench.workspace.models import WorkspaceSnapshot


class WorkspacePersistence(Protocol):
    """``save_workspaces`` / ``load_workspaces`` boundary."""

    def save(self, snapshot: WorkspaceSnapshot) -> None: ...

    def load(self) -> WorkspaceSnapshot | None: ...


class WorkspaceFile:
    """Snapshot stored as one JSON document.

    Layout::

        {"workspaces": [{"id", "projectPath", "terminalTabs": [...], ...}],
         "selectedId": "..."}
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, snapshot: WorkspaceSnapshot) -> None:
        write_json_atomic(self.path, snapshot.to_json_dict())

    def load(self) -> WorkspaceSnapshot | None:
        """Return the stored snapshot; None when missing, empty or corrupt."""
        payload = read_json(self.path)
        if not isinstance(payload, dict):
            if self.path.exists():
                logger.warning(f"[workspace] Ignoring unreadable snapshot at {self.path}")
            return None
        try:
            return WorkspaceSnapshot.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"[workspace] Invalid snapshot at {self.path}: {exc.error_count()} error(s)")
            return None
