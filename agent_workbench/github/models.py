"""GitHub status cache entities.

Field names follow ``gh --json`` output (camelCase on the wire).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CheckBucket = Literal["pass", "fail", "pending", "skipping", "cancel"]
PRState = Literal["OPEN", "CLOSED", "MERGED"]


class _GhModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class GitHubRemote(_GhModel):
    owner: str
    repo: str
    html_url: str


class ChecksStatus(_GhModel):
    """Counts rolled up into ``none | failure | pending | success``."""

    overall: str = "none"
    total: int = 0
    passing: int = 0
    failing: int = 0
    pending: int = 0

    @classmethod
    def from_counts(cls, passing: int, failing: int, pending: int) -> "ChecksStatus":
        total = passing + failing + pending
        if total == 0:
            overall = "none"
        elif failing:
            overall = "failure"
        elif pending:
            overall = "pending"
        else:
            overall = "success"
        return cls(overall=overall, total=total, passing=passing, failing=failing, pending=pending)


class PRActions(_GhModel):
    can_merge: bool = False
    can_mark_ready: bool = False
    can_update_branch: bool = False


class PullRequest(_GhModel):
    number: int
    title: str = ""
    state: str = "OPEN"
    url: str = ""
    is_draft: bool = False
    head_branch: str = Field(default="", alias="headRefName")
    review_decision: str | None = None
    checks_status: ChecksStatus = Field(default_factory=ChecksStatus)
    merge_state_status: str | None = None
    actions: PRActions = Field(default_factory=PRActions)

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"


class CheckDetail(_GhModel):
    name: str
    bucket: str = "pending"
    workflow: str = ""
    link: str = ""
    started_at: str | None = None
    completed_at: str | None = None
    description: str = ""

    @property
    def key(self) -> str:
        return f"{self.name}::{self.workflow}"


class WorkflowRun(_GhModel):
    database_id: int = 0
    name: str = ""
    display_title: str = ""
    head_branch: str = ""
    status: str = ""
    conclusion: str | None = None
    url: str = ""
    event: str = ""
    created_at: str = ""
    updated_at: str = ""


class BranchRuns(_GhModel):
    status: ChecksStatus = Field(default_factory=ChecksStatus)
    runs: tuple[WorkflowRun, ...] = ()


class ProjectStatus(_GhModel):
    """One consolidated fetch for a project."""

    remote: GitHubRemote | None = None
    prs: tuple[PullRequest, ...] = ()
    branch_runs: dict[str, BranchRuns] = Field(default_factory=dict)
    pr_checks: dict[int, tuple[CheckDetail, ...]] = Field(default_factory=dict)


def pr_for_branch(prs: tuple[PullRequest, ...], branch: str) -> PullRequest | None:
    """Open PR for *branch*, else the first one listed."""
    matches = [pr for pr in prs if pr.head_branch == branch]
    for pr in matches:
        if pr.is_open:
            return pr
    return matches[0] if matches else None
