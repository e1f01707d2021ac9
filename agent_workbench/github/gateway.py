"""GitHub boundary backed by the ``gh`` CLI.

All methods run the CLI in a worker thread. ``project_status`` and
``pr_checks`` raise TransientFetchFailure; "no checks" and "no pull
requests" answers read as empty lists.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

from loguru import logger
from pydantic import ValidationError

from agent_workbench.errors import CapabilityUnavailable, TransientFetchFailure
from agent_workbench.github.models import (
    BranchRuns,
    CheckDetail,
    ChecksStatus,
    GitHubRemote,
    PRActions,
    ProjectStatus,
    PullRequest,
    WorkflowRun,
)
from agent_workbench.utils.process import run_command

PR_FIELDS = "number,title,state,url,isDraft,headRefName,reviewDecision,statusCheckRollup,mergeStateStatus"
RUN_FIELDS = "databaseId,name,displayTitle,headBranch,status,conclusion,url,event,createdAt,updatedAt"
CHECK_FIELDS = "name,bucket,completedAt,startedAt,link,workflow,description"
# git stderr that means the project simply has no origin
NO_REMOTE_PHRASES = ("No such remote", "not a git repository")

_ROLLUP_PASS = {"SUCCESS", "NEUTRAL", "SKIPPED"}
_ROLLUP_FAIL = {"FAILURE", "ERROR", "TIMED_OUT", "CANCELLED", "ACTION_REQUIRED", "STALE"}
_RUN_PASS = {"success", "skipped", "neutral"}
_RUN_FAIL = {"failure", "cancelled", "timed_out"}


class GitHubGateway(Protocol):
    """``github_is_available`` / ``github_project_status`` / ``github_pr_checks``."""

    async def is_available(self) -> bool: ...

    async def project_status(self, project_path: str) -> ProjectStatus: ...

    async def pr_checks(self, project_path: str, pr_number: int) -> list[CheckDetail]: ...


# ------------------------------------------------------------------ #
# Parsing                                                              #
# ------------------------------------------------------------------ #


def is_github_host(host: str) -> bool:
    host = host.lower()
    if host == "github.com" or host.startswith("github.") or host.endswith(".github.com") or ".github." in host:
        return True
    for env_name in ("GH_HOST", "GITHUB_HOST"):
        configured = os.getenv(env_name, "").strip().lower()
        if configured and host == configured:
            return True
    return False


def parse_github_remote(url: str) -> GitHubRemote:
    """Parse ``git@host:owner/repo.git`` or ``https://host/owner/repo``."""
    url = url.strip()
    if "://" not in url and ":" in url:
        prefix, rest = url.split(":", 1)
        if "@" in prefix:
            host = prefix.split("@", 1)[1]
            if not is_github_host(host):
                raise ValueError(f"Not a GitHub remote: {url}")
            parts = rest.strip("/").removesuffix(".git").split("/", 1)
            if len(parts) != 2 or not all(parts):
                raise ValueError(f"Cannot parse SSH remote: {url}")
            return _remote(host, parts[0], parts[1])

    parsed = urlparse(url)
    host = parsed.hostname or ""
    if not host:
        raise ValueError(f"Cannot parse remote: {url}")
    if not is_github_host(host):
        raise ValueError(f"Not a GitHub remote: {url}")
    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) < 2:
        raise ValueError(f"Cannot parse HTTPS remote: {url}")
    return _remote(host, segments[0], segments[1].removesuffix(".git"))


def _remote(host: str, owner: str, repo: str) -> GitHubRemote:
    return GitHubRemote(owner=owner, repo=repo, html_url=f"https://{host}/{owner}/{repo}")


def parse_checks_rollup(rollup: Any) -> ChecksStatus:
    passing = failing = pending = 0
    if not isinstance(rollup, list):
        return ChecksStatus.from_counts(0, 0, 0)
    for check in rollup:
        if not isinstance(check, dict):
            continue
        state = check.get("conclusion") or check.get("state") or ""
        state = str(state).upper()
        if state in _ROLLUP_PASS:
            passing += 1
        elif state in _ROLLUP_FAIL:
            failing += 1
        else:
            pending += 1
    return ChecksStatus.from_counts(passing, failing, pending)


def derive_pr_actions(
    state: str,
    is_draft: bool,
    merge_state_status: str | None,
    checks: ChecksStatus,
) -> PRActions:
    is_open = state == "OPEN"
    return PRActions(
        can_merge=(
            is_open
            and not is_draft
            and merge_state_status != "DIRTY"
            and checks.failing == 0
            and checks.pending == 0
        ),
        can_mark_ready=is_open and is_draft,
        can_update_branch=is_open and merge_state_status == "BEHIND",
    )


def parse_pr(raw: dict[str, Any]) -> PullRequest:
    checks = parse_checks_rollup(raw.get("statusCheckRollup"))
    state = raw.get("state") or "OPEN"
    is_draft = bool(raw.get("isDraft"))
    merge_state = raw.get("mergeStateStatus")
    return PullRequest(
        number=int(raw.get("number") or 0),
        title=raw.get("title") or "",
        state=state,
        url=raw.get("url") or "",
        is_draft=is_draft,
        head_branch=raw.get("headRefName") or "",
        review_decision=raw.get("reviewDecision") or None,
        checks_status=checks,
        merge_state_status=merge_state,
        actions=derive_pr_actions(state, is_draft, merge_state, checks),
    )


def derive_branch_status(runs: list[WorkflowRun] | tuple[WorkflowRun, ...]) -> ChecksStatus:
    passing = failing = pending = 0
    for run in runs:
        if run.status != "completed":
            pending += 1
        elif run.conclusion in _RUN_PASS:
            passing += 1
        elif run.conclusion in _RUN_FAIL:
            failing += 1
        else:
            pending += 1
    return ChecksStatus.from_counts(passing, failing, pending)


def group_runs_by_branch(runs: list[WorkflowRun]) -> dict[str, BranchRuns]:
    """Latest run per workflow name, per branch."""
    by_branch: dict[str, list[WorkflowRun]] = {}
    for run in runs:
        by_branch.setdefault(run.head_branch, []).append(run)
    result: dict[str, BranchRuns] = {}
    for branch, branch_runs in by_branch.items():
        branch_runs.sort(key=lambda r: r.created_at, reverse=True)
        seen: set[str] = set()
        latest = []
        for run in branch_runs:
            if run.name in seen:
                continue
            seen.add(run.name)
            latest.append(run)
        result[branch] = BranchRuns(status=derive_branch_status(latest), runs=tuple(latest))
    return result


def parse_checks(payload: str) -> list[CheckDetail]:
    if not payload.strip():
        return []
    try:
        raw = json.loads(payload)
        return [CheckDetail.model_validate(item) for item in raw]
    except (json.JSONDecodeError, TypeError, ValidationError) as exc:
        raise TransientFetchFailure("gh pr checks", f"unparseable output: {exc}") from exc


# ------------------------------------------------------------------ #
# Gateway                                                              #
# ------------------------------------------------------------------ #


class GhCliGateway:
    """Talks to GitHub through an authenticated ``gh`` CLI."""

    def __init__(self, command: str = "gh", timeout_s: float = 30.0) -> None:
        self.command = command
        self.timeout_s = timeout_s

    async def is_available(self) -> bool:
        try:
            await asyncio.to_thread(
                run_command,
                [self.command, "auth", "status"],
                str(Path.home()),
                self.timeout_s,
            )
        except TransientFetchFailure as exc:
            logger.info(f"[github] gh unavailable: {exc}")
            return False
        return True

    async def require_available(self) -> None:
        """Raise CapabilityUnavailable unless ``gh`` is installed and logged in."""
        if not await self.is_available():
            raise CapabilityUnavailable(f"{self.command} CLI is not installed or not authenticated")

    async def project_status(self, project_path: str) -> ProjectStatus:
        return await asyncio.to_thread(self.project_status_sync, project_path)

    async def pr_checks(self, project_path: str, pr_number: int) -> list[CheckDetail]:
        return await asyncio.to_thread(self.pr_checks_sync, project_path, pr_number)

    def project_status_sync(self, project_path: str) -> ProjectStatus:
        """Remote, PRs, runs per branch and checks for every open PR."""
        try:
            url = run_command(["git", "remote", "get-url", "origin"], project_path, self.timeout_s)
            remote = parse_github_remote(url)
        except TransientFetchFailure as exc:
            if not any(phrase in exc.detail for phrase in NO_REMOTE_PHRASES):
                raise
            logger.debug(f"[github] No origin remote for {project_path}: {exc}")
            return ProjectStatus()
        except ValueError as exc:
            logger.debug(f"[github] No GitHub remote for {project_path}: {exc}")
            return ProjectStatus()

        prs = self.list_prs(project_path)
        branch_runs = group_runs_by_branch(self.list_runs(project_path))
        pr_checks: dict[int, tuple[CheckDetail, ...]] = {}
        for pr in prs:
            if not pr.is_open:
                continue
            try:
                pr_checks[pr.number] = tuple(self.pr_checks_sync(project_path, pr.number))
            except TransientFetchFailure as exc:
                logger.debug(f"[github] Checks for #{pr.number} unavailable: {exc}")
        return ProjectStatus(remote=remote, prs=tuple(prs), branch_runs=branch_runs, pr_checks=pr_checks)

    def list_prs(self, project_path: str) -> list[PullRequest]:
        try:
            output = self._gh(["pr", "list", "--state", "all", "--limit", "100", "--json", PR_FIELDS], project_path)
        except TransientFetchFailure as exc:
            if "not a git repository" in exc.detail or "no GitHub remotes" in exc.detail:
                return []
            raise
        if not output:
            return []
        try:
            return [parse_pr(item) for item in json.loads(output)]
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            raise TransientFetchFailure("gh pr list", f"unparseable output: {exc}") from exc

    def list_runs(self, project_path: str) -> list[WorkflowRun]:
        """Recent workflow runs; any failure reads as no runs."""
        try:
            output = self._gh(["run", "list", "--limit", "200", "--json", RUN_FIELDS], project_path)
            if not output:
                return []
            return [WorkflowRun.model_validate(item) for item in json.loads(output)]
        except (TransientFetchFailure, json.JSONDecodeError, TypeError, ValidationError) as exc:
            logger.debug(f"[github] Run list failed for {project_path}: {exc}")
            return []

    def pr_checks_sync(self, project_path: str, pr_number: int) -> list[CheckDetail]:
        try:
            # gh exits 8 while checks are still pending
            output = self._gh(
                ["pr", "checks", str(pr_number), "--json", CHECK_FIELDS],
                project_path,
                ok_codes=(0, 8),
            )
        except TransientFetchFailure as exc:
            if "no checks" in exc.detail or "no pull requests" in exc.detail:
                return []
            raise
        return parse_checks(output)

    def _gh(self, args: list[str], cwd: str, ok_codes: tuple[int, ...] = (0,)) -> str:
        return run_command([self.command, *args], cwd, self.timeout_s, ok_codes)
