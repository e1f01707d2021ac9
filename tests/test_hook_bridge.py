"""Tests for the hook socket bridge."""

from __future__ import annotations

import asyncio
import json

import pytest

from agent_workbench.bus import EventHub, events
from agent_workbench.hooks import HookBridge, parse_envelope


def test_claude_envelope():
    topic, event = parse_envelope(json.dumps({
        "pane_id": "p1",
        "hook": {"session_id": "abc", "hook_event_name": "Stop", "cwd": "/work/app"},
    }))
    assert topic == events.CLAUDE_HOOK
    assert (event.pane_id, event.session_id, event.hook_event_name) == ("p1", "abc", "Stop")
    assert event.hook_payload["cwd"] == "/work/app"


def test_codex_envelope_accepts_both_key_spellings():
    _, dashed = parse_envelope(json.dumps({
        "pane_id": "p2",
        "codex": {"type": "agent-turn-complete", "thread-id": "t-1"},
    }))
    _, underscored = parse_envelope(json.dumps({
        "pane_id": "p2",
        "codex": {"event": "approval-requested", "thread_id": "t-2"},
    }))
    assert (dashed.session_id, dashed.notify_event) == ("t-1", "agent-turn-complete")
    assert (underscored.session_id, underscored.notify_event) == ("t-2", "approval-requested")


@pytest.mark.parametrize("line", [
    "not json",
    "[1, 2]",
    json.dumps({"hook": {}}),
    json.dumps({"pane_id": "p1"}),
    json.dumps({"pane_id": "p1", "hook": "Stop"}),
])
def test_invalid_envelopes(line):
    assert parse_envelope(line) is None


def test_invalid_line_is_skipped_and_next_is_published(tmp_path):
    hub = EventHub()
    received = []
    hub.subscribe(events.CLAUDE_HOOK, received.append)
    bridge = HookBridge(hub, tmp_path / "hooks.sock")

    assert bridge.handle_line("{broken") is False
    assert bridge.handle_line(json.dumps({"pane_id": "p1", "hook": {"hook_event_name": "Stop"}}))
    assert len(received) == 1


@pytest.mark.asyncio
async def test_socket_roundtrip(tmp_path):
    hub = EventHub()
    received = []
    hub.subscribe(events.CODEX_NOTIFY, received.append)
    socket_path = tmp_path / "hooks.sock"
    bridge = HookBridge(hub, socket_path)
    await bridge.start()
    try:
        reader, writer = await asyncio.open_unix_connection(str(socket_path))
        writer.write(b"garbage\n")
        writer.write(json.dumps({"pane_id": "p9", "codex": {"type": "agent-turn-complete"}}).encode() + b"\n")
        await writer.drain()
        writer.close()
        await writer.wait_closed()
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
    finally:
        await bridge.stop()

    assert [e.pane_id for e in received] == ["p9"]
    assert not socket_path.exists()
