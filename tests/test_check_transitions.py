"""Tests for CI check transition detection."""

from __future__ import annotations

from agent_workbench.github import CheckDetail, CheckTransitionDetector, ProjectStatus, PullRequest

PROJECT = "/work/app"


def checks(**buckets: str) -> list[CheckDetail]:
    return [CheckDetail(name=name, workflow="CI", bucket=bucket) for name, bucket in buckets.items()]


def test_first_observation_never_fires():
    detector = CheckTransitionDetector()
    assert detector.observe_checks(PROJECT, 1, checks(build="pass", lint="fail")) == []


def test_pending_to_terminal_fires_once():
    detector = CheckTransitionDetector()
    detector.observe_checks(PROJECT, 1, checks(build="pending", lint="pending"))
    fired = detector.observe_checks(PROJECT, 1, checks(build="pass", lint="pending"))
    assert [(t.name, t.previous, t.bucket) for t in fired] == [("build", "pending", "pass")]
    assert fired[0].pr_number == 1
    assert detector.observe_checks(PROJECT, 1, checks(build="pass", lint="pending")) == []


def test_pending_to_skipping_or_cancel_is_silent():
    detector = CheckTransitionDetector()
    detector.observe_checks(PROJECT, 1, checks(a="pending", b="pending"))
    assert detector.observe_checks(PROJECT, 1, checks(a="skipping", b="cancel")) == []


def test_terminal_flip_follows_setting():
    loud = CheckTransitionDetector(notify_terminal_changes=True)
    quiet = CheckTransitionDetector(notify_terminal_changes=False)
    for detector in (loud, quiet):
        detector.observe_checks(PROJECT, 1, checks(build="fail"))
    assert len(loud.observe_checks(PROJECT, 1, checks(build="pass"))) == 1
    assert quiet.observe_checks(PROJECT, 1, checks(build="pass")) == []


def test_newly_added_check_does_not_fire():
    detector = CheckTransitionDetector()
    detector.observe_checks(PROJECT, 1, checks(build="pending"))
    fired = detector.observe_checks(PROJECT, 1, checks(build="pending", deploy="pass"))
    assert fired == []


def test_same_name_in_different_workflows_is_tracked_separately():
    detector = CheckTransitionDetector()
    detector.observe_checks(PROJECT, 1, [
        CheckDetail(name="test", workflow="unit", bucket="pending"),
        CheckDetail(name="test", workflow="e2e", bucket="pass"),
    ])
    fired = detector.observe_checks(PROJECT, 1, [
        CheckDetail(name="test", workflow="unit", bucket="fail"),
        CheckDetail(name="test", workflow="e2e", bucket="pass"),
    ])
    assert [(t.workflow, t.bucket) for t in fired] == [("unit", "fail")]


def test_full_status_prunes_prs_no_longer_listed():
    detector = CheckTransitionDetector()
    detector.observe_status(PROJECT, ProjectStatus(pr_checks={1: tuple(checks(build="pending"))}))
    detector.observe_status(PROJECT, ProjectStatus(pr_checks={2: tuple(checks(build="pending"))}))
    assert detector.previous_buckets(PROJECT, 1) == {}
    assert detector.previous_buckets(PROJECT, 2) == {"build::CI": "pending"}


def test_status_and_check_fetches_share_state():
    detector = CheckTransitionDetector()
    detector.observe_status(PROJECT, ProjectStatus(pr_checks={7: tuple(checks(build="pending"))}))
    fired = detector.observe_checks(PROJECT, 7, checks(build="fail"))
    assert [t.bucket for t in fired] == ["fail"]


def test_listed_pr_without_checks_keeps_history():
    detector = CheckTransitionDetector()
    pr = PullRequest(number=1, head_branch="feature")
    detector.observe_status(PROJECT, ProjectStatus(prs=(pr,), pr_checks={1: tuple(checks(build="pending"))}))
    detector.observe_status(PROJECT, ProjectStatus(prs=(pr,)))
    assert detector.previous_buckets(PROJECT, 1) == {"build::CI": "pending"}

    fired = detector.observe_status(PROJECT, ProjectStatus(prs=(pr,), pr_checks={1: tuple(checks(build="pass"))}))
    assert [(t.name, t.bucket) for t in fired] == [("build", "pass")]
