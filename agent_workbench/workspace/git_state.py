"""Current branch and worktree list per project, read from ``git``."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from agent_workbench.errors import TransientFetchFailure
from agent_workbench.utils.process import run_command

GitStateListener = Callable[[str], None]


@dataclass(frozen=True)
class WorktreeInfo:
    path: str
    head: str
    branch: str
    is_main: bool


def parse_worktree_porcelain(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``; bare entries are skipped."""
    worktrees: list[WorktreeInfo] = []
    path = head = branch = ""
    bare = False

    def _flush() -> None:
        if path and not bare:
            worktrees.append(WorktreeInfo(path=path, head=head, branch=branch, is_main=not worktrees))

    for line in output.splitlines():
        if line.startswith("worktree "):
            _flush()
            path, head, branch, bare = line[len("worktree "):], "", "", False
        elif line.startswith("HEAD "):
            head = line[len("HEAD "):]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            branch = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        elif line == "bare":
            bare = True
        elif not line.strip() and path:
            _flush()
            path = ""
    _flush()
    return worktrees


class GitState:
    """Cached ``branch_by_project`` and ``worktrees_by_project``."""

    def __init__(self, timeout_s: float = 10.0) -> None:
        self.timeout_s = timeout_s
        self._branches: dict[str, str] = {}
        self._worktrees: dict[str, tuple[WorktreeInfo, ...]] = {}
        self._listeners: list[GitStateListener] = []

    @property
    def branch_by_project(self) -> dict[str, str]:
        return dict(self._branches)

    @property
    def worktrees_by_project(self) -> dict[str, tuple[WorktreeInfo, ...]]:
        return dict(self._worktrees)

    def branch(self, project_path: str) -> str | None:
        return self._branches.get(project_path)

    def worktrees(self, project_path: str) -> tuple[WorktreeInfo, ...]:
        return self._worktrees.get(project_path, ())

    def subscribe(self, listener: GitStateListener) -> None:
        self._listeners.append(listener)

    def set_state(
        self,
        project_path: str,
        branch: str | None = None,
        worktrees: list[WorktreeInfo] | tuple[WorktreeInfo, ...] | None = None,
    ) -> None:
        """Replace cached state for a project and notify listeners."""
        if branch is not None:
            self._branches = {**self._branches, project_path: branch}
        if worktrees is not None:
            self._worktrees = {**self._worktrees, project_path: tuple(worktrees)}
        for listener in list(self._listeners):
            try:
                listener(project_path)
            except Exception as exc:
                logger.warning(f"[git] Listener failed: {exc}")

    async def refresh(self, project_path: str) -> None:
        """Re-read branch and worktrees; failures keep the previous values."""
        branch, worktrees = await asyncio.gather(
            self._read_branch(project_path),
            self._read_worktrees(project_path),
        )
        if branch is None and worktrees is None:
            return
        self.set_state(project_path, branch=branch, worktrees=worktrees)

    async def refresh_all(self, project_paths: list[str]) -> None:
        await asyncio.gather(*(self.refresh(p) for p in project_paths))

    async def _read_branch(self, project_path: str) -> str | None:
        try:
            return await asyncio.to_thread(
                run_command,
                ["git", "rev-parse", "--abbrev-ref", "HEAD"],
                project_path,
                self.timeout_s,
            )
        except TransientFetchFailure as exc:
            logger.debug(f"[git] No branch for {project_path}: {exc}")
            return None

    async def _read_worktrees(self, project_path: str) -> list[WorktreeInfo] | None:
        try:
            output = await asyncio.to_thread(
                run_command,
                ["git", "worktree", "list", "--porcelain"],
                project_path,
                self.timeout_s,
            )
        except TransientFetchFailure as exc:
            logger.debug(f"[git] Failed to list worktrees for {project_path}: {exc}")
            return None
        return parse_worktree_porcelain(output)
