"""GitHub PR / CI status tracking."""

from agent_workbench.github.gateway import GhCliGateway, GitHubGateway
from agent_workbench.github.models import (
    BranchRuns,
    CheckDetail,
    ChecksStatus,
    GitHubRemote,
    ProjectStatus,
    PullRequest,
    WorkflowRun,
    pr_for_branch,
)
from agent_workbench.github.poller import BranchStatus, BranchTarget, GitHubStatusPoller
from agent_workbench.github.transitions import CheckTransitionDetector

__all__ = [
    "BranchRuns",
    "BranchStatus",
    "BranchTarget",
    "CheckDetail",
    "CheckTransitionDetector",
    "ChecksStatus",
    "GhCliGateway",
    "GitHubGateway",
    "GitHubRemote",
    "GitHubStatusPoller",
    "ProjectStatus",
    "PullRequest",
    "WorkflowRun",
    "pr_for_branch",
]
