"""Tests for the workspace / tab / pane store."""

from __future__ import annotations

from conftest import MemoryPersistence

from agent_workbench.workspace import Pane, Tab, Workspace, WorkspaceSnapshot, WorkspaceStore

CLAUDE_ID = "0b6c6f2e-9a53-4d4b-8a47-51f0c0c2a111"


class TestOpenAndClose:
    def test_open_creates_and_selects(self, store):
        ws = store.open("/work/app")
        assert ws.project_name == "app"
        assert store.selected_id == ws.id
        assert store.active_workspace() == ws

    def test_open_same_project_and_worktree_reuses_workspace(self, store):
        first = store.open("/work/app")
        store.open("/work/lib")
        again = store.open("/work/app")
        assert again.id == first.id
        assert len(store.workspaces) == 2
        assert store.selected_id == first.id

    def test_worktree_gets_its_own_workspace(self, store):
        main = store.open("/work/app")
        wt = store.open("/work/app", worktree_path="/work/app-feature", branch="feature")
        assert main.id != wt.id
        assert wt.root_path == "/work/app-feature"

    def test_close_selected_falls_back_to_next_then_previous(self, store):
        a = store.open("/a")
        b = store.open("/b")
        c = store.open("/c")
        store.select(b.id)
        store.close(b.id)
        assert store.selected_id == c.id
        store.close(c.id)
        assert store.selected_id == a.id
        store.close(a.id)
        assert store.selected_id is None
        assert store.workspaces == ()

    def test_close_unknown_is_noop(self, store):
        store.open("/a")
        before = store.workspaces
        store.close("missing")
        assert store.workspaces is before

    def test_reorder(self, store):
        a = store.open("/a")
        b = store.open("/b")
        c = store.open("/c")
        store.reorder(c.id, a.id)
        assert [ws.id for ws in store.workspaces] == [c.id, a.id, b.id]

    def test_project_rename_covers_worktrees(self, store):
        main = store.open("/a")
        wt = store.open("/a", worktree_path="/a-wt")
        store.update_project_info("/a", "/renamed", "renamed")
        assert {store.get(main.id).project_path, store.get(wt.id).project_path} == {"/renamed"}
        assert store.get(wt.id).project_name == "renamed"

    def test_update_branch_skips_unchanged(self, store, persistence):
        ws = store.open("/a", branch="main")
        saves = persistence.saves
        store.update_branch(ws.id, "main")
        assert persistence.saves == saves
        store.update_branch(ws.id, "feature")
        assert store.get(ws.id).branch == "feature"


class TestTabsAndPanes:
    def test_terminal_tabs_are_numbered(self, store):
        ws = store.open("/a")
        store.add_terminal_tab(ws.id)
        tab = store.add_terminal_tab(ws.id)
        assert tab.label == "Terminal 2"
        assert store.get(ws.id).active_tab_id == tab.id

    def test_terminal_numbering_ignores_agent_tabs(self, store):
        ws = store.open("/a")
        store.add_tab(ws.id, Tab(label="Claude 1", session_type="claude", panes=(Pane(session_type="claude"),)))
        store.add_tab(ws.id, Tab(label="Terminal 1", session_type="shell", panes=(Pane(session_type="shell"),)))
        tab = store.add_terminal_tab(ws.id)
        assert tab.label == "Terminal 2"
        assert store.count_tabs(ws.id, "shell") == 2

    def test_close_active_tab_falls_back(self, store):
        ws = store.open("/a")
        t1 = store.add_terminal_tab(ws.id)
        t2 = store.add_terminal_tab(ws.id)
        store.set_active_tab(ws.id, t2.id)
        store.close_tab(ws.id, t2.id)
        assert store.get(ws.id).active_tab_id == t1.id
        store.close_tab(ws.id, t1.id)
        assert store.get(ws.id).active_tab_id == ""

    def test_split_adds_pane_to_active_tab(self, store):
        ws = store.open("/a")
        tab = store.add_terminal_tab(ws.id)
        pane = store.split(ws.id, "vertical")
        updated = store.get(ws.id).tab(tab.id)
        assert updated.split == "vertical"
        assert [p.id for p in updated.panes][-1] == pane.id

    def test_removing_last_pane_is_noop(self, store):
        ws = store.open("/a")
        tab = store.add_terminal_tab(ws.id)
        only = tab.panes[0]
        assert store.remove_pane(ws.id, only.id) is False
        assert store.find_pane(only.id) is not None

    def test_remove_pane_from_split_tab(self, store):
        ws = store.open("/a")
        store.add_terminal_tab(ws.id)
        extra = store.split(ws.id, "horizontal")
        assert store.remove_pane(ws.id, extra.id) is True
        assert store.find_pane(extra.id) is None


class TestSessionIdentity:
    def _agent_tab(self, store):
        ws = store.open("/a")
        tab = Tab(label="Claude 1", session_type="claude", panes=(Pane(session_type="claude"),))
        store.add_tab(ws.id, tab)
        return ws, tab

    def test_identity_is_set_once(self, store):
        _, tab = self._agent_tab(store)
        pane_id = tab.panes[0].id
        assert store.set_session_identity(pane_id, CLAUDE_ID, label="Fix the build")
        assert store.set_session_identity(pane_id, "other-id") is False
        _, updated_tab, pane = store.find_pane(pane_id)
        assert pane.session_id == CLAUDE_ID
        assert updated_tab.label == "Fix the build"

    def test_unknown_pane_is_ignored(self, store):
        self._agent_tab(store)
        assert store.set_session_identity("nope", CLAUDE_ID) is False


class TestPersistence:
    def test_unchanged_content_is_not_saved_twice(self, store, persistence):
        ws = store.open("/a")
        saves = persistence.saves
        store.select(ws.id)
        store.open("/a")
        assert persistence.saves == saves

    def test_every_change_is_saved(self, store, persistence):
        ws = store.open("/a")
        before = persistence.saves
        store.add_terminal_tab(ws.id)
        assert persistence.saves == before + 1
        assert persistence.snapshot.workspaces[0].tabs

    def test_load_repairs_shape(self):
        broken_tab = Tab(id="t-empty", label="Claude 1", session_type="claude", panes=())
        resumed = Tab(
            id="t-resume",
            label="Claude 2",
            session_type="claude",
            panes=(Pane(id="p1", session_type="claude", session_id=CLAUDE_ID),),
        )
        ws = Workspace(
            id="w1",
            project_path="/a",
            tabs=(broken_tab, resumed),
            active_tab_id="gone",
        )
        store = WorkspaceStore(MemoryPersistence(WorkspaceSnapshot(workspaces=(ws,))))

        assert store.load() is True
        loaded = store.get("w1")
        assert loaded.active_tab_id == "t-empty"
        assert len(loaded.tab("t-empty").panes) == 1
        assert loaded.tab("t-resume").panes[0].startup_command == f"claude --resume {CLAUDE_ID}"

    def test_load_of_empty_snapshot_keeps_state(self, store, persistence):
        store.open("/a")
        persistence.snapshot = WorkspaceSnapshot()
        assert store.load() is False
        assert len(store.workspaces) == 1

    def test_failing_listener_does_not_block_others(self, store):
        calls = []

        def broken() -> None:
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(lambda: calls.append(1))
        store.open("/a")
        assert calls == [1]
