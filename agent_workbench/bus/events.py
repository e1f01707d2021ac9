"""Typed payloads for every topic on the workbench event bus.

Wire payloads use camelCase keys; models accept either spelling.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TERMINAL_DATA = "terminal:data"
TERMINAL_INPUT = "terminal:input"
TERMINAL_VIEWPORT = "terminal:viewport"
CLAUDE_HOOK = "claude:hook"
CODEX_NOTIFY = "codex:notify"
GIT_CHANGED = "git:changed"
CHECK_TRANSITION = "github:check-transition"
MERGE_ACTION_APPLIED = "trello:merge-action-applied"
SESSION_UNRESOLVED = "session:unresolved"


class BusEvent(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class TerminalData(BusEvent):
    """Bytes a pane's process wrote to its terminal."""

    pane_id: str
    data: str


class TerminalInput(BusEvent):
    """Keystrokes the user typed into a pane."""

    pane_id: str
    data: str


class ViewportChanged(BusEvent):
    """Pane was resized or became visible again; a redraw follows."""

    pane_id: str


class ClaudeHook(BusEvent):
    pane_id: str
    session_id: str | None = None
    hook_event_name: str | None = None
    hook_payload: dict[str, Any] = Field(default_factory=dict)


class CodexNotify(BusEvent):
    pane_id: str
    session_id: str | None = None
    notify_event: str | None = None
    codex_payload: dict[str, Any] = Field(default_factory=dict)


class GitChanged(BusEvent):
    project_path: str


class CheckTransition(BusEvent):
    """A CI check left ``pending`` (or flipped between terminal buckets)."""

    project_path: str
    pr_number: int
    name: str
    workflow: str = ""
    previous: str
    bucket: str
    link: str = ""


class MergeActionApplied(BusEvent):
    project_path: str
    branch: str
    card_id: str
    board_id: str
    kind: Literal["merge", "link"] = "merge"
    failed_steps: tuple[str, ...] = ()


class SessionUnresolved(BusEvent):
    """Discovery gave up before an id appeared for a tab."""

    workspace_id: str
    tab_id: str


TOPIC_MODELS: dict[str, type[BusEvent]] = {
    TERMINAL_DATA: TerminalData,
    TERMINAL_INPUT: TerminalInput,
    TERMINAL_VIEWPORT: ViewportChanged,
    CLAUDE_HOOK: ClaudeHook,
    CODEX_NOTIFY: CodexNotify,
    GIT_CHANGED: GitChanged,
    CHECK_TRANSITION: CheckTransition,
    MERGE_ACTION_APPLIED: MergeActionApplied,
    SESSION_UNRESOLVED: SessionUnresolved,
}
