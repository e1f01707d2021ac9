"""Single-writer store for the workspace / tab / pane tree.

Every mutation builds new frozen objects and swaps the workspace tuple in one
assignment, so a reader holding ``store.workspaces`` never sees a
half-applied change. Mutations persist and then notify listeners.
"""

from __future__ import annotations

import json
from typing import Callable, Iterable

from loguru import logger

from agent_workbench.agents import AGENT_DEFS, startup_command_for
from agent_workbench.workspace.models import (
    AGENT_TYPES,
    Pane,
    SplitDirection,
    Tab,
    Workspace,
    WorkspaceSnapshot,
)
from agent_workbench.workspace.persistence import WorkspacePersistence

StoreListener = Callable[[], None]


class WorkspaceStore:
    """Owns the open workspaces and the selection."""

    def __init__(self, persistence: WorkspacePersistence | None = None) -> None:
        self._persistence = persistence
        self._workspaces: tuple[Workspace, ...] = ()
        self._selected_id: str | None = None
        self._listeners: list[StoreListener] = []
        self._last_saved: str | None = None

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    @property
    def workspaces(self) -> tuple[Workspace, ...]:
        return self._workspaces

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def active_workspace_id(self) -> str | None:
        """Selected workspace if it still exists, else the first one."""
        if self._selected_id and self.get(self._selected_id) is not None:
            return self._selected_id
        return self._workspaces[0].id if self._workspaces else None

    def active_workspace(self) -> Workspace | None:
        ws_id = self.active_workspace_id
        return self.get(ws_id) if ws_id else None

    def active_tab(self) -> Tab | None:
        ws = self.active_workspace()
        if ws is None:
            return None
        return ws.active_tab() or (ws.tabs[0] if ws.tabs else None)

    def get(self, workspace_id: str) -> Workspace | None:
        for ws in self._workspaces:
            if ws.id == workspace_id:
                return ws
        return None

    def find_by_project(self, project_path: str, worktree_path: str | None = None) -> Workspace | None:
        for ws in self._workspaces:
            if ws.project_path == project_path and ws.worktree_path == worktree_path:
                return ws
        return None

    def find_tab(self, tab_id: str) -> tuple[Workspace, Tab] | None:
        for ws in self._workspaces:
            tab = ws.tab(tab_id)
            if tab is not None:
                return ws, tab
        return None

    def find_pane(self, pane_id: str) -> tuple[Workspace, Tab, Pane] | None:
        for ws in self._workspaces:
            for tab in ws.tabs:
                pane = tab.pane(pane_id)
                if pane is not None:
                    return ws, tab, pane
        return None

    def pane_ids(self) -> set[str]:
        return {pane.id for ws in self._workspaces for tab in ws.tabs for pane in tab.panes}

    def count_tabs(self, workspace_id: str, session_type: str) -> int:
        """Tabs of one type; untyped tabs count as shells."""
        ws = self.get(workspace_id)
        if ws is None:
            return 0
        return sum(1 for tab in ws.tabs if (tab.session_type or "shell") == session_type)

    def snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(workspaces=self._workspaces, selected_id=self._selected_id)

    def subscribe(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------ #
    # Workspace-level mutations                                            #
    # ------------------------------------------------------------------ #

    def open(
        self,
        project_path: str,
        project_name: str | None = None,
        worktree_path: str | None = None,
        branch: str | None = None,
    ) -> Workspace:
        """Select the workspace for this project/worktree, creating it if needed."""
        existing = self.find_by_project(project_path, worktree_path)
        if existing is not None:
            self._commit(self._workspaces, existing.id)
            return existing

        name = project_name or project_path.rstrip("/\\").rsplit("/", 1)[-1] or project_path
        workspace = Workspace(
            project_path=project_path,
            project_name=name,
            worktree_path=worktree_path,
            branch=branch,
        )
        logger.debug(f"[workspace] Opened {project_path} (worktree={worktree_path})")
        self._commit(self._workspaces + (workspace,), workspace.id)
        return workspace

    def close(self, workspace_id: str) -> None:
        idx = self._index_of(workspace_id)
        if idx < 0:
            return
        remaining = self._workspaces[:idx] + self._workspaces[idx + 1:]
        selected = self._selected_id
        if selected == workspace_id:
            if idx < len(remaining):
                selected = remaining[idx].id
            elif idx - 1 >= 0 and remaining:
                selected = remaining[idx - 1].id
            else:
                selected = None
        self._commit(remaining, selected)

    def select(self, workspace_id: str) -> None:
        if self.get(workspace_id) is None:
            return
        self._commit(self._workspaces, workspace_id)

    def reorder(self, from_id: str, to_id: str) -> None:
        from_idx = self._index_of(from_id)
        to_idx = self._index_of(to_id)
        if from_idx < 0 or to_idx < 0 or from_idx == to_idx:
            return
        items = list(self._workspaces)
        moved = items.pop(from_idx)
        items.insert(to_idx, moved)
        self._commit(tuple(items))

    def update_project_info(self, previous_path: str, new_path: str, new_name: str) -> None:
        self._commit(tuple(
            ws.model_copy(update={"project_path": new_path, "project_name": new_name})
            if ws.project_path == previous_path else ws
            for ws in self._workspaces
        ))

    def update_branch(self, workspace_id: str, branch: str | None) -> None:
        ws = self.get(workspace_id)
        if ws is None or ws.branch == branch:
            return
        self._replace_workspace(ws.model_copy(update={"branch": branch}))

    # ------------------------------------------------------------------ #
    # Tab / pane mutations                                                 #
    # ------------------------------------------------------------------ #

    def add_terminal_tab(self, workspace_id: str, startup_command: str | None = None) -> Tab | None:
        ws = self.get(workspace_id)
        if ws is None:
            return None
        tab = Tab(
            label=f"{AGENT_DEFS['shell'].label} {self.count_tabs(workspace_id, 'shell') + 1}",
            panes=(Pane(startup_command=startup_command),),
        )
        return self.add_tab(workspace_id, tab)

    def add_tab(self, workspace_id: str, tab: Tab, activate: bool = True) -> Tab | None:
        """Append *tab*; returns None when the workspace is gone."""
        ws = self.get(workspace_id)
        if ws is None:
            return None
        update: dict = {"tabs": ws.tabs + (tab,)}
        if activate or not ws.active_tab_id:
            update["active_tab_id"] = tab.id
        self._replace_workspace(ws.model_copy(update=update))
        return tab

    def replace_tab(self, workspace_id: str, tab_id: str, new_tab: Tab) -> bool:
        """Swap a tab for a new one in the same position and make it active."""
        ws = self.get(workspace_id)
        if ws is None or ws.tab(tab_id) is None:
            return False
        tabs = tuple(new_tab if t.id == tab_id else t for t in ws.tabs)
        self._replace_workspace(ws.model_copy(update={"tabs": tabs, "active_tab_id": new_tab.id}))
        return True

    def close_tab(self, workspace_id: str, tab_id: str) -> None:
        ws = self.get(workspace_id)
        if ws is None:
            return
        idx = next((i for i, t in enumerate(ws.tabs) if t.id == tab_id), -1)
        if idx < 0:
            return
        tabs = ws.tabs[:idx] + ws.tabs[idx + 1:]
        active = ws.active_tab_id
        if active == tab_id:
            if idx < len(tabs):
                active = tabs[idx].id
            elif tabs:
                active = tabs[idx - 1].id
            else:
                active = ""
        self._replace_workspace(ws.model_copy(update={"tabs": tabs, "active_tab_id": active}))

    def set_active_tab(self, workspace_id: str, tab_id: str) -> None:
        ws = self.get(workspace_id)
        if ws is None or ws.tab(tab_id) is None:
            return
        self._replace_workspace(ws.model_copy(update={"active_tab_id": tab_id}))

    def split(self, workspace_id: str, direction: SplitDirection) -> Pane | None:
        """Add a plain pane to the active tab."""
        ws = self.get(workspace_id)
        tab = ws.active_tab() if ws is not None else None
        if ws is None or tab is None:
            return None
        pane = Pane()
        updated = tab.model_copy(update={"split": direction, "panes": tab.panes + (pane,)})
        self._replace_workspace(_with_tab(ws, updated))
        return pane

    def remove_pane(self, workspace_id: str, pane_id: str) -> bool:
        """Remove a pane; removing a tab's last pane is a no-op."""
        ws = self.get(workspace_id)
        if ws is None:
            return False
        tab = next((t for t in ws.tabs if t.pane(pane_id) is not None), None)
        if tab is None or len(tab.panes) <= 1:
            return False
        updated = tab.model_copy(update={"panes": tuple(p for p in tab.panes if p.id != pane_id)})
        self._replace_workspace(_with_tab(ws, updated))
        return True

    def set_session_identity(self, pane_id: str, session_id: str, label: str | None = None) -> bool:
        """Record a pane's session id. An id, once set, never changes."""
        found = self.find_pane(pane_id)
        if found is None or not session_id:
            return False
        ws, tab, pane = found
        if pane.session_id:
            if pane.session_id != session_id:
                logger.debug(
                    f"[workspace] Ignoring session id {session_id} for pane {pane_id}; "
                    f"already {pane.session_id}"
                )
            return False
        panes = tuple(
            p.model_copy(update={"session_id": session_id}) if p.id == pane_id else p
            for p in tab.panes
        )
        update: dict = {"panes": panes}
        if label:
            update["label"] = label
        self._replace_workspace(_with_tab(ws, tab.model_copy(update=update)))
        return True

    # ------------------------------------------------------------------ #
    # Persistence                                                          #
    # ------------------------------------------------------------------ #

    def load(self) -> bool:
        """Restore from persistence; an empty or missing snapshot keeps current state."""
        if self._persistence is None:
            return False
        try:
            snapshot = self._persistence.load()
        except Exception as exc:
            logger.warning(f"[workspace] Failed to load workspaces: {exc}")
            return False
        if snapshot is None or snapshot.is_empty:
            return False
        self._workspaces = tuple(snapshot.workspaces)
        self._selected_id = snapshot.selected_id
        self._last_saved = _serialize(self.snapshot())
        self.ensure_shape()
        self._notify()
        logger.info(f"[workspace] Restored {len(self._workspaces)} workspace(s)")
        return True

    def ensure_shape(self) -> bool:
        """Repair loaded data: panes, active ids and agent startup commands."""
        changed = False
        normalized: list[Workspace] = []
        for ws in self._workspaces:
            tabs = tuple(_normalize_tab(tab) for tab in ws.tabs)
            if not tabs:
                active = ""
            elif any(t.id == ws.active_tab_id for t in tabs):
                active = ws.active_tab_id
            else:
                active = tabs[0].id
            if tabs != ws.tabs or active != ws.active_tab_id:
                changed = True
                ws = ws.model_copy(update={"tabs": tabs, "active_tab_id": active})
            normalized.append(ws)
        if changed:
            self._commit(tuple(normalized))
        return changed

    def persist(self) -> bool:
        """Save the snapshot unless its content is unchanged since the last save."""
        if self._persistence is None:
            return False
        snapshot = self.snapshot()
        serialized = _serialize(snapshot)
        if serialized == self._last_saved:
            return False
        try:
            self._persistence.save(snapshot)
        except Exception as exc:
            logger.warning(f"[workspace] Failed to save workspaces: {exc}")
            return False
        self._last_saved = serialized
        return True

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _index_of(self, workspace_id: str) -> int:
        for i, ws in enumerate(self._workspaces):
            if ws.id == workspace_id:
                return i
        return -1

    def _replace_workspace(self, updated: Workspace) -> None:
        self._commit(tuple(updated if ws.id == updated.id else ws for ws in self._workspaces))

    def _commit(
        self,
        workspaces: Iterable[Workspace],
        selected_id: str | None | object = ...,
    ) -> None:
        self._workspaces = tuple(workspaces)
        if selected_id is not ...:
            self._selected_id = selected_id  # type: ignore[assignment]
        self.persist()
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as exc:
                logger.warning(f"[workspace] Listener failed: {exc}")


def _with_tab(ws: Workspace, tab: Tab) -> Workspace:
    return ws.model_copy(update={"tabs": tuple(tab if t.id == tab.id else t for t in ws.tabs)})


def _normalize_tab(tab: Tab) -> Tab:
    if not tab.panes:
        pane = Pane(
            session_type=tab.session_type,
            startup_command=startup_command_for(tab.session_type, None),
        )
        return tab.model_copy(update={"panes": (pane,)})
    panes = []
    for pane in tab.panes:
        if pane.session_type in AGENT_TYPES:
            command = startup_command_for(pane.session_type, pane.session_id)
            if command != pane.startup_command:
                pane = pane.model_copy(update={"startup_command": command})
        panes.append(pane)
    panes_t = tuple(panes)
    if panes_t == tab.panes:
        return tab
    return tab.model_copy(update={"panes": panes_t})


def _serialize(snapshot: WorkspaceSnapshot) -> str:
    return json.dumps(snapshot.to_json_dict(), sort_keys=True)


__all__ = ["WorkspaceStore", "StoreListener"]
