"""Classify terminal output chunks and hook payloads into activity signals."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from agent_workbench.config.schema import ActivityConfig

ANSI_FULL_RE = re.compile(
    r"\x1B[@-_][0-?]*[ -/]*[@-~]"  # CSI
    r"|\x1B\][^\x07\x1B]*(?:\x07|\x1B\\)"  # OSC
    r"|\x1BP[^\x1B]*\x1B\\"  # DCS
    r"|\x1B[()][0-9A-Za-z]"  # charset
)

SUBMIT_KEYS = ("\r", "\n")

# Claude Notification hook types meaning "waiting on the user".
IDLE_NOTIFICATION_TYPES = frozenset({"idle_prompt", "permission_prompt", "elicitation_dialog"})

IDLE_PHRASE_RE = re.compile(
    r"waiting for your (?:input|response|reply)"
    r"|needs your (?:permission|approval|attention|input)"
    r"|is waiting for"
    r"|awaiting (?:your )?input",
    re.IGNORECASE,
)

CLAUDE_BUSY_EVENTS = frozenset({"UserPromptSubmit", "PreToolUse", "PostToolUse"})
CLAUDE_IDLE_EVENTS = frozenset({"Stop", "SessionStart", "SessionEnd"})
CODEX_IDLE_EVENTS = frozenset({"agent-turn-complete", "approval-requested"})


class ChunkKind(str, Enum):
    WHITESPACE = "whitespace"
    VIEWPORT = "viewport"
    TYPING = "typing"
    ECHO = "echo"
    GENUINE = "genuine"

    @property
    def is_noise(self) -> bool:
        return self is not ChunkKind.GENUINE


@dataclass
class InputState:
    """Recent local input on one pane."""

    last_keystroke_at: float | None = None
    last_keystroke_len: int = 0
    unsubmitted: bool = False
    viewport_changed_at: float | None = None

    def record_keystrokes(self, data: str, now: float) -> bool:
        """Remember a keystroke; returns True when it submits (Enter)."""
        submitted = any(key in data for key in SUBMIT_KEYS)
        self.last_keystroke_at = now
        self.last_keystroke_len = len(data)
        self.unsubmitted = not submitted
        return submitted

    def record_viewport_change(self, now: float) -> None:
        self.viewport_changed_at = now


def strip_ansi(data: str) -> str:
    return ANSI_FULL_RE.sub("", data)


def classify_chunk(
    data: str,
    state: InputState | None,
    now: float,
    config: ActivityConfig,
) -> ChunkKind:
    """Decide whether a terminal chunk is real agent output or local noise."""
    visible = strip_ansi(data)
    if not visible.strip():
        return ChunkKind.WHITESPACE
    if state is None:
        return ChunkKind.GENUINE

    if state.viewport_changed_at is not None and now - state.viewport_changed_at <= config.viewport_grace_s:
        return ChunkKind.VIEWPORT

    since_key = None if state.last_keystroke_at is None else now - state.last_keystroke_at
    if since_key is None:
        return ChunkKind.GENUINE

    if state.unsubmitted and since_key <= config.typing_window_s:
        return ChunkKind.TYPING

    if (
        since_key <= config.echo_window_s
        and state.last_keystroke_len <= config.echo_max_chars
        and len(visible) <= config.echo_max_chars
        and "\n" not in visible
        and "\r" not in visible
    ):
        return ChunkKind.ECHO

    return ChunkKind.GENUINE


def notification_signals_idle(payload: dict[str, Any]) -> bool:
    """Whether a Notification hook says the agent is waiting on the user."""
    kind = payload.get("notification_type") or payload.get("notificationType")
    if isinstance(kind, str) and kind in IDLE_NOTIFICATION_TYPES:
        return True
    message = payload.get("message")
    return isinstance(message, str) and bool(IDLE_PHRASE_RE.search(message))
