"""Shared fixtures: a manual clock, in-memory boundaries and a populated store."""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from agent_workbench.github.models import CheckDetail, ProjectStatus
from agent_workbench.sessions.discovery import DiscoveredSession
from agent_workbench.workspace import WorkspaceSnapshot, WorkspaceStore


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Deterministic clock; timers fire only inside ``advance``."""

    def __init__(self) -> None:
        self.time = 0.0
        self.timers: list[FakeTimer] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.time + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.time = timer.when
            timer.callback()
        self.time = target


class MemoryPersistence:
    def __init__(self, snapshot: WorkspaceSnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.saves = 0

    def save(self, snapshot: WorkspaceSnapshot) -> None:
        self.snapshot = snapshot
        self.saves += 1

    def load(self) -> WorkspaceSnapshot | None:
        return self.snapshot


class FakeDiscovery:
    """Returns queued listings in order, then repeats the last one.

    A queued exception is raised instead of returned.
    """

    def __init__(self, *listings: list[DiscoveredSession]) -> None:
        self.listings = list(listings) or [[]]
        self.calls: list[tuple[str, str]] = []

    async def discover(self, session_type: str, project_path: str) -> list[DiscoveredSession]:
        self.calls.append((session_type, project_path))
        listing = self.listings.pop(0) if len(self.listings) > 1 else self.listings[0]
        if isinstance(listing, Exception):
            raise listing
        return listing


class FakeGitHub:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.statuses: dict[str, ProjectStatus] = {}
        self.checks: dict[tuple[str, int], list[CheckDetail]] = {}
        self.status_calls: list[str] = []
        self.check_calls: list[tuple[str, int]] = []
        self.availability_calls = 0
        self.error: Exception | None = None

    async def is_available(self) -> bool:
        self.availability_calls += 1
        return self.available

    async def project_status(self, project_path: str) -> ProjectStatus:
        self.status_calls.append(project_path)
        if self.error is not None:
            raise self.error
        return self.statuses.get(project_path, ProjectStatus())

    async def pr_checks(self, project_path: str, pr_number: int) -> list[CheckDetail]:
        self.check_calls.append((project_path, pr_number))
        if self.error is not None:
            raise self.error
        return list(self.checks.get((project_path, pr_number), []))


class FakeBoard:
    """Records Trello calls; ids listed in ``fail`` raise."""

    def __init__(self, fail: set[str] | None = None) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.fail = fail or set()

    async def _record(self, *call: str) -> None:
        from agent_workbench.errors import TransientFetchFailure

        self.calls.append(call)
        await asyncio.sleep(0)
        if call[-1] in self.fail:
            raise TransientFetchFailure(f"trello {call[0]}", "HTTP 500")

    async def move_card(self, card_id: str, list_id: str) -> None:
        await self._record("move", card_id, list_id)

    async def add_label(self, card_id: str, label_id: str) -> None:
        await self._record("add", card_id, label_id)

    async def remove_label(self, card_id: str, label_id: str) -> None:
        await self._record("remove", card_id, label_id)

    async def fetch_board_data(self, board_id: str, hidden_columns: tuple[str, ...] = ()):
        from agent_workbench.trello.models import BoardData, TrelloBoard

        self.calls.append(("fetch", board_id))
        return BoardData(board=TrelloBoard(id=board_id, name="Board"))


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def store(persistence: MemoryPersistence) -> WorkspaceStore:
    return WorkspaceStore(persistence)
