"""Tests for the JSON workspace file and config loading."""

from __future__ import annotations

import json

from agent_workbench.config import Config, load_config, save_config
from agent_workbench.workspace import Pane, Tab, Workspace, WorkspaceFile, WorkspaceSnapshot


def test_snapshot_written_with_camel_case_keys(tmp_path):
    path = tmp_path / "workspaces.json"
    tab = Tab(id="t1", label="Claude 1", session_type="claude", panes=(Pane(id="p1", session_type="claude"),))
    snapshot = WorkspaceSnapshot(
        workspaces=(Workspace(id="w1", project_path="/a", tabs=(tab,), active_tab_id="t1"),),
        selected_id="w1",
    )
    WorkspaceFile(path).save(snapshot)

    raw = json.loads(path.read_text())
    assert raw["selectedId"] == "w1"
    ws = raw["workspaces"][0]
    assert ws["projectPath"] == "/a"
    assert ws["activeTerminalTabId"] == "t1"
    assert ws["terminalTabs"][0]["type"] == "claude"
    assert WorkspaceFile(path).load() == snapshot


def test_legacy_session_key_is_accepted(tmp_path):
    path = tmp_path / "workspaces.json"
    path.write_text(json.dumps({
        "workspaces": [{
            "id": "w1",
            "projectPath": "/a",
            "terminalTabs": [{
                "id": "t1",
                "label": "Claude 1",
                "type": "claude",
                "panes": [{"id": "p1", "type": "claude", "claudeSessionId": "abc"}],
            }],
        }],
    }))
    snapshot = WorkspaceFile(path).load()
    assert snapshot.workspaces[0].tabs[0].panes[0].session_id == "abc"


def test_missing_or_corrupt_file_loads_as_none(tmp_path):
    path = tmp_path / "workspaces.json"
    assert WorkspaceFile(path).load() is None
    path.write_text("{not json")
    assert WorkspaceFile(path).load() is None
    path.write_text(json.dumps({"workspaces": "nope"}))
    assert WorkspaceFile(path).load() is None


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.github.slow_poll_s == 90.0
        assert config.github.fast_poll_s == 15.0
        assert config.github.debounce_s == 2.0
        assert config.hook_socket_path == config.data_path / "hooks.sock"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("AGENT_WORKBENCH_GITHUB__FAST_POLL_S", "5")
        assert Config().github.fast_poll_s == 5.0

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "config.json"
        config = Config()
        config.activity.quiet_threshold_s = 3.0
        save_config(config, path)
        assert load_config(path).activity.quiet_threshold_s == 3.0

    def test_unreadable_file_yields_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{")
        assert load_config(path).discovery.max_attempts == Config().discovery.max_attempts
