"""Immutable workspace / tab / pane tree.

Instances are never mutated; the store replaces them wholesale. Serialized
keys are camelCase so snapshots stay readable by the desktop frontend.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SessionType = Literal["shell", "claude", "codex"]
SplitDirection = Literal["horizontal", "vertical"]

AGENT_TYPES: frozenset[str] = frozenset({"claude", "codex"})


def new_id() -> str:
    return str(uuid.uuid4())


class _Frozen(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Pane(_Frozen):
    id: str = Field(default_factory=new_id)
    session_type: SessionType | None = Field(
        default=None,
        validation_alias=AliasChoices("type", "session_type", "sessionType"),
        serialization_alias="type",
    )
    session_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id", "claudeSessionId"),
        serialization_alias="sessionId",
    )
    startup_command: str | None = None


class Tab(_Frozen):
    id: str = Field(default_factory=new_id)
    label: str
    split: SplitDirection = "horizontal"
    session_type: SessionType | None = Field(
        default=None,
        validation_alias=AliasChoices("type", "session_type", "sessionType"),
        serialization_alias="type",
    )
    panes: tuple[Pane, ...] = ()

    @property
    def is_agent(self) -> bool:
        return self.session_type in AGENT_TYPES

    def ai_pane(self) -> Pane | None:
        """The pane hosting the agent: first of the tab's type, else the first pane."""
        if not self.panes:
            return None
        for pane in self.panes:
            if pane.session_type == self.session_type:
                return pane
        return self.panes[0]

    def pane(self, pane_id: str) -> Pane | None:
        for pane in self.panes:
            if pane.id == pane_id:
                return pane
        return None


class Workspace(_Frozen):
    id: str = Field(default_factory=new_id)
    project_path: str
    project_name: str = ""
    worktree_path: str | None = None
    branch: str | None = None
    tabs: tuple[Tab, ...] = Field(
        default=(),
        validation_alias=AliasChoices("terminalTabs", "tabs"),
        serialization_alias="terminalTabs",
    )
    active_tab_id: str = Field(
        default="",
        validation_alias=AliasChoices("activeTerminalTabId", "active_tab_id", "activeTabId"),
        serialization_alias="activeTerminalTabId",
    )

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.project_path, self.worktree_path)

    @property
    def root_path(self) -> str:
        """Directory the workspace's processes run in."""
        return self.worktree_path or self.project_path

    def tab(self, tab_id: str) -> Tab | None:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def active_tab(self) -> Tab | None:
        return self.tab(self.active_tab_id) if self.active_tab_id else None

    def agent_tabs(self) -> list[Tab]:
        return [tab for tab in self.tabs if tab.is_agent]


class WorkspaceSnapshot(_Frozen):
    """Persisted form of the whole tree."""

    workspaces: tuple[Workspace, ...] = ()
    selected_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.workspaces

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
