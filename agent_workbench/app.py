"""Composition root: builds every component and wires the event bus."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from agent_workbench.activity import ActivityClassifier, AttentionAggregator
from agent_workbench.bus import events
from agent_workbench.bus.hub import EventHub
from agent_workbench.config.schema import Config
from agent_workbench.github import CheckTransitionDetector, GhCliGateway, GitHubGateway, GitHubStatusPoller
from agent_workbench.github.models import ProjectStatus
from agent_workbench.hooks import HookBridge
from agent_workbench.notifications import send_notification
from agent_workbench.sessions import LocalSessionDiscovery, SessionDiscovery, SessionLifecycle
from agent_workbench.trello import BoardCache, BoardConfigStore, MergeAutomation, TrelloClient
from agent_workbench.trello.boards import ClientFactory
from agent_workbench.trello.models import TrelloCredentials
from agent_workbench.utils.timers import LoopScheduler, Scheduler
from agent_workbench.workspace import GitState, WorkspaceFile, WorkspacePersistence, WorkspaceStore

Notifier = Callable[[str, str], bool]


class Workbench:
    """Owns the component graph for one process.

    Every bus subscription is registered here, once, at construction.
    Boundaries (persistence, discovery, GitHub, Trello, notifier, scheduler)
    can be swapped for tests.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        persistence: WorkspacePersistence | None = None,
        discovery: SessionDiscovery | None = None,
        gateway: GitHubGateway | None = None,
        board_client_factory: ClientFactory | None = None,
        scheduler: Scheduler | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or Config()
        self.scheduler = scheduler or LoopScheduler()
        self.notifier = notifier or send_notification

        self.hub = EventHub()
        self.store = WorkspaceStore(persistence or WorkspaceFile(self.config.workspaces_file))
        self.git_state = GitState(timeout_s=self.config.github.command_timeout_s)
        self.lifecycle = SessionLifecycle(
            self.store,
            discovery or LocalSessionDiscovery(),
            self.config.discovery,
            hub=self.hub,
        )
        self.classifier = ActivityClassifier(
            self.store,
            self.scheduler,
            self.config.activity,
            on_session_id=self.lifecycle.assign_session,
        )
        self.attention = AttentionAggregator(self.store, self.classifier)
        self.poller = GitHubStatusPoller(
            gateway
            or GhCliGateway(
                command=self.config.github.command,
                timeout_s=self.config.github.command_timeout_s,
            ),
            self.store,
            self.git_state,
            self.attention,
            self.scheduler,
            self.config.github,
        )
        self.detector = CheckTransitionDetector(self.config.github.notify_terminal_changes)

        self.board_store = BoardConfigStore(self.config.trello_dir)
        client_factory = board_client_factory or self._trello_client
        self.board_cache = BoardCache(self.board_store, client_factory)
        self.automation = MergeAutomation(
            self.board_store, client_factory, self.board_cache, hub=self.hub
        )
        self.hook_bridge = HookBridge(self.hub, self.config.hook_socket_path)

        self._background: set[asyncio.Task] = set()
        self._started = False
        self._known_projects: set[str] = set()
        self._subscribe()

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.store.load()
        projects = self.project_paths()
        await self.git_state.refresh_all(projects)

        if self.config.hooks.enabled:
            try:
                await self.hook_bridge.start()
            except OSError as exc:
                logger.warning(f"[app] Hook bridge unavailable: {exc}")

        if self.config.github.enabled:
            await self.poller.init_for_projects(projects)
            self.poller.start()
        if self.config.trello.enabled:
            self._spawn(self.board_cache.refresh_all(), "board-refresh")
        logger.info(f"[app] Workbench started with {len(self.store.workspaces)} workspace(s)")

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self.poller.stop()
        self.lifecycle.stop()
        self.classifier.stop()
        self.automation.stop()
        for task in self._background:
            task.cancel()
        self._background.clear()
        await self.hook_bridge.stop()
        self.store.persist()
        logger.info("[app] Workbench stopped")

    def project_paths(self) -> list[str]:
        return list(dict.fromkeys(ws.project_path for ws in self.store.workspaces))

    # ------------------------------------------------------------------ #
    #  Wiring                                                              #
    # ------------------------------------------------------------------ #

    def _subscribe(self) -> None:
        self.hub.subscribe(events.TERMINAL_DATA, self.classifier.on_terminal_data)
        self.hub.subscribe(events.TERMINAL_INPUT, self.classifier.on_terminal_input)
        self.hub.subscribe(events.TERMINAL_VIEWPORT, self.classifier.on_viewport_change)
        self.hub.subscribe(events.CLAUDE_HOOK, self.classifier.on_claude_hook)
        self.hub.subscribe(events.CODEX_NOTIFY, self.classifier.on_codex_notify)
        self.hub.subscribe(events.GIT_CHANGED, self._on_git_changed)
        self.hub.subscribe(events.CHECK_TRANSITION, self._on_check_transition)
        self.hub.subscribe(events.MERGE_ACTION_APPLIED, self._on_merge_action_applied)

        self.store.subscribe(self.classifier.prune)
        self.store.subscribe(self._on_store_changed)
        self.poller.add_status_listener(self._on_project_status)
        self.poller.add_checks_listener(self._on_pr_checks)

    def _on_store_changed(self) -> None:
        current = set(self.project_paths())
        for project_path in self._known_projects - current:
            self.detector.forget_project(project_path)
            self.board_cache.untrack(project_path)
        for project_path in current - self._known_projects:
            self.board_cache.track(project_path)
        self._known_projects = current

    def _on_git_changed(self, event: events.GitChanged) -> None:
        self._spawn(self.git_state.refresh(event.project_path), f"git-refresh-{event.project_path}")
        if self.config.github.enabled:
            self.poller.request_refresh(event.project_path)

    def _on_project_status(self, project_path: str, status: ProjectStatus) -> None:
        for transition in self.detector.observe_status(project_path, status):
            self.hub.publish(events.CHECK_TRANSITION, transition)
        if self.config.trello.enabled:
            self.automation.observe(project_path, status.prs)

    def _on_pr_checks(self, project_path: str, pr_number: int, checks) -> None:
        for transition in self.detector.observe_checks(project_path, pr_number, checks):
            self.hub.publish(events.CHECK_TRANSITION, transition)

    def _on_check_transition(self, event: events.CheckTransition) -> None:
        notifications = self.config.notifications
        if not (notifications.enabled and notifications.on_check_transition):
            return
        verb = "passed" if event.bucket == "pass" else "failed"
        self.notifier(f"PR #{event.pr_number}: {event.name} {verb}", event.project_path)

    def _on_merge_action_applied(self, event: events.MergeActionApplied) -> None:
        notifications = self.config.notifications
        if not (notifications.enabled and notifications.on_merge_action):
            return
        message = f"Card updated for {event.branch}"
        if event.failed_steps:
            message += f" ({len(event.failed_steps)} step(s) failed)"
        self.notifier("Board updated", message)

    def _trello_client(self, credentials: TrelloCredentials) -> TrelloClient:
        return TrelloClient(
            credentials,
            api_base=self.config.trello.api_base,
            timeout_s=self.config.trello.request_timeout_s,
        )

    def _spawn(self, coro: Awaitable, name: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()  # type: ignore[attr-defined]
            return
        task = loop.create_task(coro, name=name)  # type: ignore[arg-type]
        self._background.add(task)
        task.add_done_callback(self._background.discard)
