"""Per-pane IDLE / IN_PROGRESS tracking for agent panes.

Two inputs drive the state:

* Claude lifecycle hooks are authoritative. Once a pane has delivered a
  hook it is *hook-driven* and raw output no longer moves its state.
* For panes without hooks, terminal output is filtered through
  ``classify_chunk``; genuine output marks the pane busy and a quiescence
  timer brings it back to idle. Codex only reports turn completion, so its
  notify events force IDLE while output keeps driving the busy edge.

A local Enter is an optimistic busy signal guarded by a fallback timer.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

from loguru import logger

from agent_workbench.activity.signals import (
    CLAUDE_BUSY_EVENTS,
    CLAUDE_IDLE_EVENTS,
    CODEX_IDLE_EVENTS,
    InputState,
    classify_chunk,
    notification_signals_idle,
)
from agent_workbench.bus.events import (
    ClaudeHook,
    CodexNotify,
    TerminalData,
    TerminalInput,
    ViewportChanged,
)
from agent_workbench.config.schema import ActivityConfig
from agent_workbench.utils.timers import KeyedTimers, Scheduler
from agent_workbench.workspace.store import WorkspaceStore


class ActivityState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


ActivityListener = Callable[[str, ActivityState], None]
SessionIdSink = Callable[[str, str], object]


class ActivityClassifier:
    """Owns the in-progress set and the per-pane timers."""

    def __init__(
        self,
        store: WorkspaceStore,
        scheduler: Scheduler,
        config: ActivityConfig | None = None,
        on_session_id: SessionIdSink | None = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.config = config or ActivityConfig()
        self.on_session_id = on_session_id
        self._in_progress: set[str] = set()
        self._inputs: dict[str, InputState] = {}
        self._hook_driven: set[str] = set()
        self._quiet = KeyedTimers(scheduler)
        self._fallback = KeyedTimers(scheduler)
        self._listeners: list[ActivityListener] = []

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    @property
    def in_progress(self) -> frozenset[str]:
        return frozenset(self._in_progress)

    def is_in_progress(self, pane_id: str) -> bool:
        return pane_id in self._in_progress

    def state(self, pane_id: str) -> ActivityState:
        return ActivityState.IN_PROGRESS if pane_id in self._in_progress else ActivityState.IDLE

    def is_hook_driven(self, pane_id: str) -> bool:
        return pane_id in self._hook_driven

    def has_pending_timer(self, pane_id: str) -> bool:
        return self._quiet.pending(pane_id) or self._fallback.pending(pane_id)

    def subscribe(self, listener: ActivityListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------ #
    # Event handlers                                                       #
    # ------------------------------------------------------------------ #

    def on_terminal_data(self, event: TerminalData) -> None:
        pane_id = event.pane_id
        if not self._is_agent_pane(pane_id) or pane_id in self._hook_driven:
            return
        kind = classify_chunk(
            event.data,
            self._inputs.get(pane_id),
            self.scheduler.now(),
            self.config,
        )
        if kind.is_noise:
            return
        self._fallback.cancel(pane_id)
        self._set(pane_id, True, "output")
        self._quiet.schedule(
            pane_id,
            self.config.quiet_threshold_s,
            lambda: self._expire(pane_id, "quiescent"),
        )

    def on_terminal_input(self, event: TerminalInput) -> None:
        pane_id = event.pane_id
        if not self._is_agent_pane(pane_id):
            return
        state = self._inputs.setdefault(pane_id, InputState())
        submitted = state.record_keystrokes(event.data, self.scheduler.now())
        if not submitted or pane_id in self._hook_driven:
            return
        self._set(pane_id, True, "submit")
        self._quiet.cancel(pane_id)
        self._fallback.schedule(
            pane_id,
            self.config.submit_fallback_s,
            lambda: self._expire(pane_id, "submit fallback"),
        )

    def on_viewport_change(self, event: ViewportChanged) -> None:
        if not self._is_agent_pane(event.pane_id):
            return
        state = self._inputs.setdefault(event.pane_id, InputState())
        state.record_viewport_change(self.scheduler.now())

    def on_claude_hook(self, event: ClaudeHook) -> None:
        pane_id = event.pane_id
        if not self._is_agent_pane(pane_id):
            logger.debug(f"[activity] Dropping hook for unknown pane {pane_id}")
            return
        self._hook_driven.add(pane_id)
        self._forward_session_id(pane_id, event.session_id)

        name = event.hook_event_name or ""
        if name in CLAUDE_BUSY_EVENTS:
            self._fallback.cancel(pane_id)
            self._quiet.cancel(pane_id)
            self._set(pane_id, True, name)
        elif name in CLAUDE_IDLE_EVENTS:
            self._set(pane_id, False, name)
        elif name == "Notification" and notification_signals_idle(event.hook_payload):
            self._set(pane_id, False, name)

    def on_codex_notify(self, event: CodexNotify) -> None:
        pane_id = event.pane_id
        if not self._is_agent_pane(pane_id):
            logger.debug(f"[activity] Dropping notify for unknown pane {pane_id}")
            return
        self._forward_session_id(pane_id, event.session_id)
        if (event.notify_event or "") in CODEX_IDLE_EVENTS:
            self._set(pane_id, False, event.notify_event or "notify")

    # ------------------------------------------------------------------ #
    # Housekeeping                                                         #
    # ------------------------------------------------------------------ #

    def forget(self, pane_id: str) -> None:
        """Drop all state for a pane without notifying."""
        self._quiet.cancel(pane_id)
        self._fallback.cancel(pane_id)
        self._inputs.pop(pane_id, None)
        self._hook_driven.discard(pane_id)
        self._in_progress.discard(pane_id)

    def prune(self) -> None:
        """Forget panes that are no longer in the workspace tree."""
        live = self.store.pane_ids()
        tracked = self._in_progress | set(self._inputs) | self._hook_driven
        for pane_id in tracked - live:
            self.forget(pane_id)

    def stop(self) -> None:
        self._quiet.cancel_all()
        self._fallback.cancel_all()

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _is_agent_pane(self, pane_id: str) -> bool:
        found = self.store.find_pane(pane_id)
        if found is None:
            return False
        _, tab, pane = found
        ai_pane = tab.ai_pane()
        return tab.is_agent and ai_pane is not None and ai_pane.id == pane.id

    def _expire(self, pane_id: str, reason: str) -> None:
        if not self._is_agent_pane(pane_id):
            self.forget(pane_id)
            return
        self._set(pane_id, False, reason)

    def _forward_session_id(self, pane_id: str, session_id: str | None) -> None:
        if not session_id or self.on_session_id is None:
            return
        try:
            self.on_session_id(pane_id, session_id)
        except Exception as exc:
            logger.warning(f"[activity] Session id handler failed for {pane_id}: {exc}")

    def _set(self, pane_id: str, busy: bool, reason: str) -> None:
        if not busy:
            self._quiet.cancel(pane_id)
            self._fallback.cancel(pane_id)
        was_busy = pane_id in self._in_progress
        if busy == was_busy:
            return
        if busy:
            self._in_progress.add(pane_id)
        else:
            self._in_progress.discard(pane_id)
        state = ActivityState.IN_PROGRESS if busy else ActivityState.IDLE
        logger.debug(f"[activity] {pane_id} -> {state.value} ({reason})")
        for listener in list(self._listeners):
            try:
                listener(pane_id, state)
            except Exception as exc:
                logger.warning(f"[activity] Listener failed: {exc}")
