"""Tests for the per-pane activity classifier."""

from __future__ import annotations

import pytest

from agent_workbench.activity import ActivityClassifier, ActivityState
from agent_workbench.activity.signals import ChunkKind, InputState, classify_chunk, notification_signals_idle
from agent_workbench.bus.events import ClaudeHook, CodexNotify, TerminalData, TerminalInput, ViewportChanged
from agent_workbench.config.schema import ActivityConfig
from agent_workbench.workspace import Pane, Tab

SESSION_ID = "0b6c6f2e-9a53-4d4b-8a47-51f0c0c2a111"


@pytest.fixture
def setup(store, scheduler):
    ws = store.open("/work/app")
    tab = Tab(label="Claude 1", session_type="claude", panes=(Pane(id="ai", session_type="claude"),))
    store.add_tab(ws.id, tab)
    shell = store.add_terminal_tab(ws.id)
    forwarded = []
    classifier = ActivityClassifier(
        store,
        scheduler,
        ActivityConfig(),
        on_session_id=lambda pane_id, sid: forwarded.append((pane_id, sid)),
    )
    changes = []
    classifier.subscribe(lambda pane_id, state: changes.append((pane_id, state)))
    return classifier, ws, shell, changes, forwarded


def output(data: str = "Reading files...\n") -> TerminalData:
    return TerminalData(pane_id="ai", data=data)


class TestOutputHeuristic:
    def test_genuine_output_then_quiescence(self, setup, scheduler):
        classifier, *_, changes, _ = setup
        classifier.on_terminal_data(output())
        assert classifier.is_in_progress("ai")
        scheduler.advance(0.9)
        classifier.on_terminal_data(output("more\n"))
        scheduler.advance(0.9)
        assert classifier.is_in_progress("ai")
        scheduler.advance(0.2)
        assert not classifier.is_in_progress("ai")
        assert changes == [("ai", ActivityState.IN_PROGRESS), ("ai", ActivityState.IDLE)]

    def test_whitespace_and_ansi_only_chunks_are_noise(self, setup):
        classifier, *_ = setup
        classifier.on_terminal_data(output("\x1b[2K\x1b[1G  \r\n"))
        assert not classifier.is_in_progress("ai")

    def test_redraw_after_viewport_change_is_noise(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_viewport_change(ViewportChanged(pane_id="ai"))
        scheduler.advance(0.3)
        classifier.on_terminal_data(output("full screen redraw\n"))
        assert not classifier.is_in_progress("ai")
        scheduler.advance(0.5)
        classifier.on_terminal_data(output("real work\n"))
        assert classifier.is_in_progress("ai")

    def test_typing_echo_is_noise(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_terminal_input(TerminalInput(pane_id="ai", data="h"))
        scheduler.advance(0.05)
        classifier.on_terminal_data(output("h"))
        assert not classifier.is_in_progress("ai")

    def test_output_on_non_agent_pane_is_ignored(self, setup):
        classifier, _, shell, changes, _ = setup
        classifier.on_terminal_data(TerminalData(pane_id=shell.panes[0].id, data="build ok\n"))
        classifier.on_terminal_data(TerminalData(pane_id="unknown", data="x\n"))
        assert changes == []


class TestSubmit:
    def test_enter_forces_in_progress_with_fallback(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_terminal_input(TerminalInput(pane_id="ai", data="\r"))
        assert classifier.is_in_progress("ai")
        scheduler.advance(29.0)
        assert classifier.is_in_progress("ai")
        scheduler.advance(2.0)
        assert not classifier.is_in_progress("ai")

    def test_output_after_submit_switches_to_quiescence_timer(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_terminal_input(TerminalInput(pane_id="ai", data="\r"))
        scheduler.advance(0.5)
        classifier.on_terminal_data(output("Thinking about it\n"))
        scheduler.advance(1.1)
        assert not classifier.is_in_progress("ai")


class TestHooks:
    def test_hook_driven_pane_ignores_output(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="SessionStart"))
        classifier.on_terminal_data(output())
        assert not classifier.is_in_progress("ai")
        assert classifier.is_hook_driven("ai")

    def test_busy_and_idle_events(self, setup, scheduler):
        classifier, *_ = setup
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="UserPromptSubmit"))
        assert classifier.is_in_progress("ai")
        scheduler.advance(120.0)
        assert classifier.is_in_progress("ai")
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="Stop"))
        assert not classifier.is_in_progress("ai")
        assert not classifier.has_pending_timer("ai")

    def test_replayed_stop_stays_idle(self, setup):
        classifier, *_, changes, _ = setup
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="UserPromptSubmit"))
        for _ in range(2):
            classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="Stop"))
            assert not classifier.is_in_progress("ai")
        assert changes == [("ai", ActivityState.IN_PROGRESS), ("ai", ActivityState.IDLE)]

    def test_idle_notification(self, setup):
        classifier, *_ = setup
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", hook_event_name="PreToolUse"))
        classifier.on_claude_hook(ClaudeHook(
            pane_id="ai",
            hook_event_name="Notification",
            hook_payload={"message": "Claude needs your permission to use Bash"},
        ))
        assert not classifier.is_in_progress("ai")

    def test_session_id_is_forwarded(self, setup):
        classifier, *_, forwarded = setup
        classifier.on_claude_hook(ClaudeHook(pane_id="ai", session_id=SESSION_ID, hook_event_name="SessionStart"))
        assert forwarded == [("ai", SESSION_ID)]

    def test_codex_turn_complete_forces_idle(self, setup):
        classifier, *_, forwarded = setup
        classifier.on_terminal_data(output())
        classifier.on_codex_notify(CodexNotify(pane_id="ai", session_id="thread-1", notify_event="agent-turn-complete"))
        assert not classifier.is_in_progress("ai")
        assert forwarded == [("ai", "thread-1")]
        assert not classifier.is_hook_driven("ai")


class TestPrune:
    def test_timer_for_removed_pane_is_dropped(self, setup, store, scheduler):
        classifier, ws, _, changes, _ = setup
        classifier.on_terminal_data(output())
        tab_id = store.find_pane("ai")[1].id
        store.close_tab(ws.id, tab_id)
        classifier.prune()
        assert classifier.in_progress == frozenset()
        scheduler.advance(5.0)
        assert changes == [("ai", ActivityState.IN_PROGRESS)]


class TestSignals:
    def test_classify_without_input_state_is_genuine(self):
        assert classify_chunk("done\n", None, 0.0, ActivityConfig()) is ChunkKind.GENUINE

    def test_echo_requires_short_chunk(self):
        state = InputState()
        state.record_keystrokes("\r", 10.0)
        config = ActivityConfig()
        assert classify_chunk("ok", state, 10.05, config) is ChunkKind.ECHO
        assert classify_chunk("a long line of output", state, 10.05, config) is ChunkKind.GENUINE

    @pytest.mark.parametrize("keys", ["a\r", "ab\r", "abc\r"])
    def test_short_keystroke_echo_is_noise(self, keys):
        state = InputState()
        state.record_keystrokes(keys, 10.0)
        assert classify_chunk(keys.rstrip("\r"), state, 10.1, ActivityConfig()) is ChunkKind.ECHO

    def test_long_keystroke_is_not_echo(self):
        state = InputState()
        state.record_keystrokes("abcd\r", 10.0)
        assert classify_chunk("abc", state, 10.1, ActivityConfig()) is ChunkKind.GENUINE

    def test_notification_types(self):
        assert notification_signals_idle({"notification_type": "idle_prompt"})
        assert not notification_signals_idle({"message": "Task finished successfully"})
