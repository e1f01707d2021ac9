"""Start, resume and restart agent sessions inside workspace tabs.

A freshly started agent does not know its session id until the CLI writes
its transcript. The id arrives either pushed by a hook/notify event
(``assign_session``) or pulled by a bounded discovery poll that watches the
transcript listing for an id that was not there when the tab was opened.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from agent_workbench.agents import get_agent_def, startup_command_for
from agent_workbench.bus import EventHub
from agent_workbench.bus.events import SESSION_UNRESOLVED, SessionUnresolved
from agent_workbench.config.schema import DiscoveryConfig
from agent_workbench.sessions.discovery import DiscoveredSession, SessionDiscovery
from agent_workbench.workspace.models import Pane, SessionType, Tab
from agent_workbench.workspace.store import WorkspaceStore


class SessionLifecycle:
    """Creates session tabs and resolves their ids."""

    def __init__(
        self,
        store: WorkspaceStore,
        discovery: SessionDiscovery,
        config: DiscoveryConfig | None = None,
        hub: EventHub | None = None,
    ) -> None:
        self.store = store
        self.discovery = discovery
        self.config = config or DiscoveryConfig()
        self.hub = hub
        self._discovered: dict[tuple[str, str], list[DiscoveredSession]] = {}
        self._polls: dict[str, asyncio.Task] = {}
        self._unresolved: set[str] = set()

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    def start(self, workspace_id: str, session_type: SessionType) -> Tab | None:
        """Open a new session tab labelled ``"{Label} {n}"``."""
        agent = get_agent_def(session_type)
        count = self.store.count_tabs(workspace_id, session_type)
        tab = _session_tab(
            label=f"{agent.label} {count + 1}",
            session_type=session_type,
            session_id=None,
            startup_command=agent.new_session_command(),
        )
        if self.store.add_tab(workspace_id, tab) is None:
            return None
        logger.info(f"[sessions] Started {tab.label} in workspace {workspace_id}")
        if agent.is_agent:
            self._spawn_poll(workspace_id, tab.id, session_type)
        return tab

    def resume(
        self,
        workspace_id: str,
        session_id: str,
        label: str,
        session_type: SessionType = "claude",
    ) -> Tab | None:
        """Open a tab that resumes a known session; invalid ids raise ValueError."""
        agent = get_agent_def(session_type)
        command = agent.resume_command(session_id)
        tab = _session_tab(
            label=label or f"{agent.label} {session_id[:8]}",
            session_type=session_type,
            session_id=session_id,
            startup_command=command,
        )
        if self.store.add_tab(workspace_id, tab) is None:
            return None
        logger.info(f"[sessions] Resumed {session_type} session {session_id}")
        return tab

    def restart(self, workspace_id: str, tab_id: str) -> Tab | None:
        """Replace an agent tab with a fresh one, resuming its session when known."""
        ws = self.store.get(workspace_id)
        old = ws.tab(tab_id) if ws is not None else None
        if old is None or not old.is_agent or old.session_type is None:
            return None
        self._cancel_poll(tab_id)
        self._unresolved.discard(tab_id)

        ai_pane = old.ai_pane()
        session_id = ai_pane.session_id if ai_pane is not None else None
        command = startup_command_for(old.session_type, session_id)
        tab = _session_tab(
            label=old.label,
            session_type=old.session_type,
            session_id=session_id,
            startup_command=command,
        )
        if not self.store.replace_tab(workspace_id, tab_id, tab):
            return None
        logger.info(f"[sessions] Restarted {old.label} ({'resume' if session_id else 'fresh'})")
        if not session_id:
            self._spawn_poll(workspace_id, tab.id, old.session_type)
        return tab

    def assign_session(self, pane_id: str, session_id: str) -> bool:
        """Record an id pushed by a hook or notify event."""
        found = self.store.find_pane(pane_id)
        if found is None:
            return False
        _, tab, _ = found
        applied = self.store.set_session_identity(pane_id, session_id)
        if applied:
            logger.debug(f"[sessions] Pane {pane_id} bound to session {session_id}")
            self._cancel_poll(tab.id)
            self._unresolved.discard(tab.id)
        return applied

    async def discover(self, session_type: str, project_path: str) -> list[DiscoveredSession]:
        """List sessions for a project; failures read as an empty listing."""
        return list(await self._list(session_type, project_path) or [])

    def discovered(self, session_type: str, project_path: str) -> list[DiscoveredSession]:
        return list(self._discovered.get((session_type, project_path), []))

    def is_polling(self, tab_id: str) -> bool:
        return tab_id in self._polls

    def is_unresolved(self, tab_id: str) -> bool:
        return tab_id in self._unresolved

    def forget_tab(self, tab_id: str) -> None:
        self._cancel_poll(tab_id)
        self._unresolved.discard(tab_id)

    def stop(self) -> None:
        for task in list(self._polls.values()):
            task.cancel()
        self._polls.clear()

    # ------------------------------------------------------------------ #
    # Discovery poll                                                       #
    # ------------------------------------------------------------------ #

    def _spawn_poll(self, workspace_id: str, tab_id: str, session_type: str) -> None:
        ws = self.store.get(workspace_id)
        if ws is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"[sessions] No event loop; tab {tab_id} waits for a hook to bind its session")
            return
        self._cancel_poll(tab_id)
        self._polls[tab_id] = loop.create_task(
            self._poll(tab_id, session_type, ws.root_path),
            name=f"session-discovery-{tab_id}",
        )

    def _cancel_poll(self, tab_id: str) -> None:
        task = self._polls.pop(tab_id, None)
        if task is not None:
            task.cancel()

    async def _poll(self, tab_id: str, session_type: str, project_path: str) -> None:
        try:
            cached = self._discovered.get((session_type, project_path))
            if cached is None:
                cached = await self._list(session_type, project_path)
            # None until one listing succeeds; nothing is matched before then
            known = {s.session_id for s in cached} if cached is not None else None

            for _ in range(self.config.max_attempts):
                await asyncio.sleep(self.config.interval_s)
                pane = self._pending_pane(tab_id)
                if pane is None:
                    return
                sessions = await self._list(session_type, project_path)
                if sessions is None:
                    continue
                if known is None:
                    known = {s.session_id for s in sessions}
                    continue
                claimed = self._claimed_ids()
                found = next(
                    (s for s in sessions if s.session_id not in known and s.session_id not in claimed),
                    None,
                )
                if found is None:
                    continue
                pane = self._pending_pane(tab_id)
                if pane is None:
                    return
                self.store.set_session_identity(pane.id, found.session_id, label=found.label)
                logger.info(f"[sessions] Discovered session {found.session_id} for tab {tab_id}")
                return

            if self._pending_pane(tab_id) is not None:
                self._mark_unresolved(tab_id)
        finally:
            if self._polls.get(tab_id) is asyncio.current_task():
                del self._polls[tab_id]

    async def _list(self, session_type: str, project_path: str) -> list[DiscoveredSession] | None:
        """Listing, or ``None`` when it failed."""
        try:
            sessions = list(await self.discovery.discover(session_type, project_path))
        except Exception as exc:
            logger.debug(f"[sessions] Discovery failed for {project_path}: {exc}")
            return None
        self._discovered[(session_type, project_path)] = sessions
        return sessions

    def _pending_pane(self, tab_id: str) -> Pane | None:
        """AI pane of the tab if the tab still exists and has no session id yet."""
        found = self.store.find_tab(tab_id)
        if found is None:
            return None
        pane = found[1].ai_pane()
        if pane is None or pane.session_id:
            return None
        return pane

    def _claimed_ids(self) -> set[str]:
        return {
            pane.session_id
            for ws in self.store.workspaces
            for tab in ws.tabs
            for pane in tab.panes
            if pane.session_id
        }

    def _mark_unresolved(self, tab_id: str) -> None:
        self._unresolved.add(tab_id)
        found = self.store.find_tab(tab_id)
        logger.info(
            f"[sessions] Gave up discovering a session for tab {tab_id} "
            f"after {self.config.max_attempts} attempts"
        )
        if self.hub is not None and found is not None:
            self.hub.publish(
                SESSION_UNRESOLVED,
                SessionUnresolved(workspace_id=found[0].id, tab_id=tab_id),
            )


def _session_tab(
    label: str,
    session_type: SessionType,
    session_id: str | None,
    startup_command: str | None,
) -> Tab:
    pane = Pane(
        session_type=session_type,
        session_id=session_id,
        startup_command=startup_command,
    )
    return Tab(label=label, session_type=session_type, panes=(pane,))
