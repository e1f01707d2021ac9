"""Detect CI checks finishing between two successive fetches."""

from __future__ import annotations

from typing import Iterable, Mapping

from loguru import logger

from agent_workbench.bus.events import CheckTransition
from agent_workbench.github.models import CheckDetail, ProjectStatus

TERMINAL_BUCKETS = frozenset({"pass", "fail"})

PRKey = tuple[str, int]


def bucket_map(checks: Iterable[CheckDetail]) -> dict[str, str]:
    return {check.key: check.bucket for check in checks}


class CheckTransitionDetector:
    """Remembers the last bucket of every check, per PR.

    ``pending -> pass|fail`` always fires. ``pass <-> fail`` (a re-run that
    changed the outcome) fires when ``notify_terminal_changes`` is set.
    A check seen for the first time never fires.
    """

    def __init__(self, notify_terminal_changes: bool = True) -> None:
        self.notify_terminal_changes = notify_terminal_changes
        self._buckets: dict[PRKey, dict[str, str]] = {}

    def observe_status(self, project_path: str, status: ProjectStatus) -> list[CheckTransition]:
        """Diff every PR in a full status fetch; PRs no longer listed are forgotten.

        A listed PR whose checks are missing from the fetch keeps its history.
        """
        transitions: list[CheckTransition] = []
        seen: set[PRKey] = {(project_path, pr.number) for pr in status.prs}
        for pr_number, checks in status.pr_checks.items():
            key = (project_path, int(pr_number))
            seen.add(key)
            transitions.extend(self._observe(key, checks))
        self._buckets = {
            key: buckets
            for key, buckets in self._buckets.items()
            if key[0] != project_path or key in seen
        }
        return transitions

    def observe_checks(
        self,
        project_path: str,
        pr_number: int,
        checks: Iterable[CheckDetail],
    ) -> list[CheckTransition]:
        """Diff one PR's checks fetched on their own."""
        return self._observe((project_path, pr_number), list(checks))

    def previous_buckets(self, project_path: str, pr_number: int) -> Mapping[str, str]:
        return dict(self._buckets.get((project_path, pr_number), {}))

    def forget_project(self, project_path: str) -> None:
        self._buckets = {k: v for k, v in self._buckets.items() if k[0] != project_path}

    def _observe(self, key: PRKey, checks: Iterable[CheckDetail]) -> list[CheckTransition]:
        checks = list(checks)
        previous = self._buckets.get(key)
        self._buckets[key] = bucket_map(checks)
        if previous is None:
            return []

        transitions = []
        for check in checks:
            before = previous.get(check.key)
            if before is None or not self._fires(before, check.bucket):
                continue
            logger.info(
                f"[checks] {key[0]}#{key[1]} {check.name} ({check.workflow}): {before} -> {check.bucket}"
            )
            transitions.append(
                CheckTransition(
                    project_path=key[0],
                    pr_number=key[1],
                    name=check.name,
                    workflow=check.workflow,
                    previous=before,
                    bucket=check.bucket,
                    link=check.link,
                )
            )
        return transitions

    def _fires(self, before: str, after: str) -> bool:
        if after not in TERMINAL_BUCKETS or before == after:
            return False
        if before == "pending":
            return True
        return self.notify_terminal_changes and before in TERMINAL_BUCKETS
