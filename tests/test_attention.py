"""Tests for the attention view."""

from __future__ import annotations

import pytest

from agent_workbench.activity import ActivityClassifier, AttentionAggregator
from agent_workbench.bus.events import TerminalData
from agent_workbench.workspace import Pane, Tab


@pytest.fixture
def view(store, scheduler):
    classifier = ActivityClassifier(store, scheduler)
    return AttentionAggregator(store, classifier), classifier


def agent_tab(session_type: str, pane_id: str) -> Tab:
    return Tab(label=f"{session_type} tab", session_type=session_type, panes=(Pane(id=pane_id, session_type=session_type),))


def test_groups_agent_tabs_by_project_including_worktrees(store, view):
    aggregator, _ = view
    main = store.open("/work/app")
    wt = store.open("/work/app", worktree_path="/work/app-wt", branch="feature")
    other = store.open("/work/lib")
    store.add_tab(main.id, agent_tab("claude", "p1"))
    store.add_tab(wt.id, agent_tab("codex", "p2"))
    store.add_terminal_tab(other.id)

    grouped = aggregator.by_project()
    assert list(grouped) == ["/work/app"]
    entries = grouped["/work/app"]
    assert [e.pane_id for e in entries] == ["p1", "p2"]
    assert entries[1].worktree_path == "/work/app-wt"
    assert all(e.needs_attention for e in entries)


def test_memo_invalidated_by_activity_changes(store, view):
    aggregator, classifier = view
    ws = store.open("/work/app")
    store.add_tab(ws.id, agent_tab("claude", "p1"))
    assert [e.pane_id for e in aggregator.needing_attention()] == ["p1"]

    classifier.on_terminal_data(TerminalData(pane_id="p1", data="compiling...\n"))
    assert aggregator.needing_attention() == []
    assert aggregator.active_project_paths() == ["/work/app"]


def test_memo_invalidated_by_store_changes(store, view):
    aggregator, _ = view
    ws = store.open("/work/app")
    assert aggregator.by_project() == {}
    store.add_tab(ws.id, agent_tab("claude", "p1"))
    assert list(aggregator.by_project()) == ["/work/app"]
