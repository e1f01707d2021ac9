"""Adaptive GitHub status polling.

Two tiers share one cache:

* slow: every ``slow_poll_s`` every project with an open agent session is
  re-fetched;
* fast: while the focused branch has a pending check or run, it is
  re-fetched every ``fast_poll_s``. The fast loop stops as soon as nothing
  is pending.

Fetches are deduplicated per key, ``git:changed`` bursts are debounced per
project, and a failed ``gh`` availability check turns every path into a
no-op for the rest of the process.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable

from loguru import logger

from agent_workbench.activity.attention import AttentionAggregator
from agent_workbench.config.schema import GitHubConfig
from agent_workbench.github.gateway import GitHubGateway
from agent_workbench.github.models import (
    BranchRuns,
    CheckDetail,
    GitHubRemote,
    ProjectStatus,
    PullRequest,
    pr_for_branch,
)
from agent_workbench.utils.timers import KeyedTimers, Scheduler
from agent_workbench.workspace.git_state import GitState
from agent_workbench.workspace.store import WorkspaceStore

StatusListener = Callable[[str, ProjectStatus], None]
ChecksListener = Callable[[str, int, tuple[CheckDetail, ...]], None]


@dataclass(frozen=True)
class BranchTarget:
    project_path: str
    branch: str


@dataclass(frozen=True)
class BranchStatus:
    pr: PullRequest | None
    remote: GitHubRemote | None
    branch_runs: BranchRuns | None


class GitHubStatusPoller:
    """Owns the remote/PR/run/check caches for every open project."""

    def __init__(
        self,
        gateway: GitHubGateway,
        store: WorkspaceStore,
        git_state: GitState,
        attention: AttentionAggregator,
        scheduler: Scheduler,
        config: GitHubConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.git_state = git_state
        self.attention = attention
        self.config = config or GitHubConfig()

        self.available: bool | None = None
        self._remotes: dict[str, GitHubRemote | None] = {}
        self._prs: dict[str, tuple[PullRequest, ...]] = {}
        self._branch_runs: dict[str, dict[str, BranchRuns]] = {}
        self._checks: dict[tuple[str, int], tuple[CheckDetail, ...]] = {}

        self._inflight: dict[Hashable, asyncio.Task] = {}
        self._debounce = KeyedTimers(scheduler)
        self._background: set[asyncio.Task] = set()
        self._slow_task: asyncio.Task | None = None
        self._fast_task: asyncio.Task | None = None
        self._override: BranchTarget | None = None
        self._override_workspace_id: str | None = None
        self._active_branches: list[BranchTarget] | None = None

        self._status_listeners: list[StatusListener] = []
        self._checks_listeners: list[ChecksListener] = []

        store.subscribe(self._on_tree_changed)
        git_state.subscribe(lambda _path: self._on_tree_changed())

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the slow polling loop."""
        if self._slow_task is not None:
            return
        self._slow_task = asyncio.create_task(self._slow_loop(), name="github-slow-poll")
        logger.info(f"[github] Slow poll started, interval={self.config.slow_poll_s}s")

    def stop(self) -> None:
        for task in (self._slow_task, self._fast_task, *self._background):
            if task is not None:
                task.cancel()
        self._slow_task = None
        self._fast_task = None
        self._background.clear()
        self._debounce.cancel_all()

    @property
    def fast_polling_active(self) -> bool:
        return self._fast_task is not None

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def add_checks_listener(self, listener: ChecksListener) -> None:
        self._checks_listeners.append(listener)

    # ------------------------------------------------------------------ #
    # Availability                                                         #
    # ------------------------------------------------------------------ #

    async def check_available(self) -> bool:
        """Check once; the answer holds for the process lifetime."""
        if self.available is not None:
            return self.available
        try:
            available = bool(await self.gateway.is_available())
        except Exception as exc:
            logger.warning(f"[github] Availability check failed: {exc}")
            available = False
        self.available = available
        self._active_branches = None
        if not available:
            logger.info("[github] gh CLI unavailable; status polling disabled")
            self._stop_fast_polling()
        return available

    async def init_for_projects(self, project_paths: list[str]) -> None:
        if not await self.check_available():
            return
        await asyncio.gather(*(self.fetch_project_status(p) for p in project_paths))

    # ------------------------------------------------------------------ #
    # Fetching                                                             #
    # ------------------------------------------------------------------ #

    async def fetch_project_status(self, project_path: str) -> bool:
        """Fetch and cache a project's status. Concurrent callers share one request."""
        return await self._dedup(("status", project_path), lambda: self._fetch_status(project_path))

    async def fetch_pr_checks(self, project_path: str, pr_number: int) -> bool:
        return await self._dedup(
            ("checks", project_path, pr_number),
            lambda: self._fetch_checks(project_path, pr_number),
        )

    async def refresh_project(self, project_path: str) -> bool:
        if self.available is False:
            return False
        return await self.fetch_project_status(project_path)

    def request_refresh(self, project_path: str) -> None:
        """Debounced refresh, driven by ``git:changed``."""
        if self.available is False:
            return
        self._debounce.schedule(
            project_path,
            self.config.debounce_s,
            lambda: self._spawn(self.refresh_project(project_path), f"github-refresh-{project_path}"),
        )

    def refresh_pending(self, project_path: str) -> bool:
        return self._debounce.pending(project_path)

    async def poll_active_branches(self) -> None:
        """One slow-tier pass: each project with an active branch, sequentially."""
        if self.available is False:
            return
        seen: list[str] = []
        for target in self.active_branches():
            if target.project_path not in seen:
                seen.append(target.project_path)
        for project_path in seen:
            await self.fetch_project_status(project_path)

    # ------------------------------------------------------------------ #
    # Derived views                                                        #
    # ------------------------------------------------------------------ #

    def active_branches(self) -> list[BranchTarget]:
        """(project, branch) pairs for every project with an open agent session."""
        if self.available is False:
            return []
        if self._active_branches is None:
            self._active_branches = self._compute_active_branches()
        return list(self._active_branches)

    @property
    def target(self) -> BranchTarget | None:
        """Focus override for the active workspace, else the active workspace's branch."""
        if self._override is not None and self._override_workspace_id == self.store.active_workspace_id:
            return self._override
        ws = self.store.active_workspace()
        if ws is None:
            return None
        branch = ws.branch or self.git_state.branch(ws.project_path)
        if not branch:
            return None
        return BranchTarget(ws.project_path, branch)

    def target_pr(self) -> PullRequest | None:
        target = self.target
        if target is None:
            return None
        return pr_for_branch(self._prs.get(target.project_path, ()), target.branch)

    def focus(self, project_path: str, branch: str) -> None:
        """Point the fast tier at a branch of the active workspace's project."""
        self._override = BranchTarget(project_path, branch)
        self._override_workspace_id = self.store.active_workspace_id
        self._spawn(self.refresh_project(project_path), f"github-focus-{project_path}")

    def clear_focus(self) -> None:
        self._override = None
        self._override_workspace_id = None
        self._stop_fast_polling()

    # ------------------------------------------------------------------ #
    # Cache reads                                                          #
    # ------------------------------------------------------------------ #

    def remote(self, project_path: str) -> GitHubRemote | None:
        return self._remotes.get(project_path)

    def remote_url(self, project_path: str) -> str | None:
        remote = self._remotes.get(project_path)
        return remote.html_url if remote is not None else None

    def prs(self, project_path: str) -> tuple[PullRequest, ...]:
        return self._prs.get(project_path, ())

    def branch_runs(self, project_path: str) -> dict[str, BranchRuns]:
        return dict(self._branch_runs.get(project_path, {}))

    def pr_checks(self, project_path: str, pr_number: int) -> tuple[CheckDetail, ...] | None:
        return self._checks.get((project_path, pr_number))

    def branch_status(self, project_path: str, branch: str) -> BranchStatus | None:
        """None until the project has been fetched at least once."""
        if project_path not in self._prs:
            return None
        return BranchStatus(
            pr=pr_for_branch(self._prs[project_path], branch),
            remote=self._remotes.get(project_path),
            branch_runs=self._branch_runs.get(project_path, {}).get(branch),
        )

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    async def _dedup(self, key: Hashable, factory: Callable[[], Awaitable[bool]]) -> bool:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_marked(key, factory))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _run_marked(self, key: Hashable, factory: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return await factory()
        finally:
            self._inflight.pop(key, None)

    async def _fetch_status(self, project_path: str) -> bool:
        try:
            status = await self.gateway.project_status(project_path)
        except Exception as exc:
            logger.warning(f"[github] Failed to fetch status for {project_path}: {exc}")
            return False

        self._remotes = {**self._remotes, project_path: status.remote}
        self._prs = {**self._prs, project_path: tuple(status.prs)}
        self._branch_runs = {**self._branch_runs, project_path: dict(status.branch_runs)}
        if status.pr_checks:
            self._checks = {
                **self._checks,
                **{(project_path, num): tuple(checks) for num, checks in status.pr_checks.items()},
            }
        logger.debug(f"[github] {project_path}: {len(status.prs)} PR(s), {len(status.branch_runs)} branch(es)")

        for listener in list(self._status_listeners):
            try:
                listener(project_path, status)
            except Exception as exc:
                logger.warning(f"[github] Status listener failed: {exc}")
        self._update_fast_polling()
        return True

    async def _fetch_checks(self, project_path: str, pr_number: int) -> bool:
        try:
            checks = tuple(await self.gateway.pr_checks(project_path, pr_number))
        except Exception as exc:
            logger.warning(f"[github] Failed to fetch checks for {project_path}#{pr_number}: {exc}")
            return False

        self._checks = {**self._checks, (project_path, pr_number): checks}
        for listener in list(self._checks_listeners):
            try:
                listener(project_path, pr_number, checks)
            except Exception as exc:
                logger.warning(f"[github] Checks listener failed: {exc}")
        self._update_fast_polling()
        return True

    def _compute_active_branches(self) -> list[BranchTarget]:
        with_sessions = set(self.attention.by_project())
        targets: list[BranchTarget] = []

        def _add(project_path: str, branch: str | None) -> None:
            if branch and branch != "HEAD":
                target = BranchTarget(project_path, branch)
                if target not in targets:
                    targets.append(target)

        project_paths: list[str] = []
        for ws in self.store.workspaces:
            if ws.project_path in with_sessions and ws.project_path not in project_paths:
                project_paths.append(ws.project_path)

        for project_path in project_paths:
            _add(project_path, self.git_state.branch(project_path))
            for ws in self.store.workspaces:
                if ws.project_path == project_path and ws.worktree_path:
                    _add(project_path, ws.branch)
            for wt in self.git_state.worktrees(project_path):
                if not wt.is_main:
                    _add(project_path, wt.branch)
        return targets

    def _on_tree_changed(self) -> None:
        self._active_branches = None
        self._update_fast_polling()

    def _target_has_pending(self, target: BranchTarget) -> bool:
        pr = pr_for_branch(self._prs.get(target.project_path, ()), target.branch)
        if pr is not None:
            checks = self._checks.get((target.project_path, pr.number), ())
            return any(c.bucket == "pending" for c in checks)
        runs = self._branch_runs.get(target.project_path, {}).get(target.branch)
        return runs is not None and runs.status.pending > 0

    def _update_fast_polling(self) -> None:
        target = self.target
        pending = (
            self.available is not False
            and target is not None
            and self._target_has_pending(target)
        )
        if pending and self._fast_task is None:
            self._start_fast_polling()
        elif not pending and self._fast_task is not None:
            self._stop_fast_polling()

    def _start_fast_polling(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._fast_task = loop.create_task(self._fast_loop(), name="github-fast-poll")
        logger.debug(f"[github] Fast poll started, interval={self.config.fast_poll_s}s")

    def _stop_fast_polling(self) -> None:
        task, self._fast_task = self._fast_task, None
        if task is not None:
            task.cancel()
            logger.debug("[github] Fast poll stopped")

    async def _fast_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.fast_poll_s)
            target = self.target
            if target is None:
                self._stop_fast_polling()
                return
            try:
                pr = self.target_pr()
                if pr is not None:
                    await self.fetch_pr_checks(target.project_path, pr.number)
                await self.refresh_project(target.project_path)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"[github] Fast poll tick failed: {exc}")

    async def _slow_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.config.slow_poll_s)
                await self.poll_active_branches()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning(f"[github] Slow poll loop error: {exc}")

    def _spawn(self, coro: Awaitable, name: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()  # type: ignore[attr-defined]
            return
        task = loop.create_task(coro, name=name)  # type: ignore[arg-type]
        self._background.add(task)
        task.add_done_callback(self._background.discard)

