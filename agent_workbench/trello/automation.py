"""Board automation driven by PR merges and task linking."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Awaitable, Callable

from loguru import logger

from agent_workbench.bus import events
from agent_workbench.bus.hub import EventHub
from agent_workbench.github.models import PullRequest, pr_for_branch
from agent_workbench.trello.api import BoardGateway
from agent_workbench.trello.boards import BoardCache, ClientFactory
from agent_workbench.trello.config import BoardConfigStore
from agent_workbench.trello.models import MergeAction, TaskLink


class MergeAutomation:
    """Runs a board's merge action once when a linked branch's PR merges.

    State is kept per ``(project_path, head_branch)``. The first observation
    of a key only records it; later ``non-MERGED -> MERGED`` edges fire.
    """

    def __init__(
        self,
        config_store: BoardConfigStore,
        client_factory: ClientFactory,
        board_cache: BoardCache | None = None,
        hub: EventHub | None = None,
    ) -> None:
        self.config_store = config_store
        self.client_factory = client_factory
        self.board_cache = board_cache
        self.hub = hub
        self._last_state: dict[tuple[str, str], str] = {}
        self._inflight: set[tuple[str, str]] = set()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    #  Merge edge detection                                                #
    # ------------------------------------------------------------------ #

    def observe(self, project_path: str, prs: Iterable[PullRequest]) -> list[str]:
        """Record PR states; returns branches that just merged.

        A merge action is spawned for each returned branch when a loop runs.
        """
        prs = tuple(prs)
        seen: set[tuple[str, str]] = set()
        merged: list[str] = []
        for branch in dict.fromkeys(pr.head_branch for pr in prs if pr.head_branch):
            pr = pr_for_branch(prs, branch)
            if pr is None:
                continue
            key = (project_path, branch)
            seen.add(key)
            previous = self._last_state.get(key)
            self._last_state[key] = pr.state
            if previous is not None and previous != "MERGED" and pr.state == "MERGED":
                logger.info(f"[trello] PR #{pr.number} merged on {branch} ({project_path})")
                merged.append(branch)

        for key in [k for k in self._last_state if k[0] == project_path and k not in seen]:
            del self._last_state[key]

        for branch in merged:
            self._spawn(self.apply_merge_action(project_path, branch), f"merge-action-{branch}")
        return merged

    def last_state(self, project_path: str, branch: str) -> str | None:
        return self._last_state.get((project_path, branch))

    # ------------------------------------------------------------------ #
    #  Actions                                                             #
    # ------------------------------------------------------------------ #

    async def apply_merge_action(
        self, project_path: str, branch: str
    ) -> events.MergeActionApplied | None:
        """Run the merge action for the card linked to *branch*.

        Returns ``None`` when nothing is configured or a run for the same
        key is already in flight.
        """
        key = (project_path, branch)
        if key in self._inflight:
            logger.debug(f"[trello] Merge action already running for {branch}")
            return None
        self._inflight.add(key)
        try:
            credentials = self.config_store.load_credentials()
            if credentials is None:
                return None
            config = self.config_store.load_project_config(project_path)
            link = config.link_for_branch(branch)
            if link is None:
                return None
            board = config.board(link.board_id)
            if board is None or board.merge_action is None:
                return None

            client = self.client_factory(credentials)
            failed = await self._execute(client, link.card_id, board.merge_action)
            return await self._finish(link, "merge", failed)
        finally:
            self._inflight.discard(key)

    async def link_task(
        self,
        project_path: str,
        card_id: str,
        board_id: str,
        branch: str,
        worktree_path: str | None = None,
    ) -> TaskLink:
        """Link a card to a branch, then run the board's link action if any."""
        link = TaskLink(
            card_id=card_id,
            board_id=board_id,
            branch=branch,
            worktree_path=worktree_path,
            project_path=project_path,
        )
        config = self.config_store.upsert_task_link(link)
        logger.info(f"[trello] Linked card {card_id} to {branch}")

        board = config.board(board_id)
        credentials = self.config_store.load_credentials()
        if board is None or board.link_action is None or credentials is None:
            return link
        failed = await self._execute(self.client_factory(credentials), card_id, board.link_action)
        await self._finish(link, "link", failed)
        return link

    async def wait_idle(self) -> None:
        """Wait for spawned merge actions to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def stop(self) -> None:
        for task in self._background:
            task.cancel()
        self._background.clear()

    # ------------------------------------------------------------------ #
    #  Internals                                                           #
    # ------------------------------------------------------------------ #

    async def _execute(self, client: BoardGateway, card_id: str, action: MergeAction) -> list[str]:
        """Move, add labels, remove labels; each step is best effort."""
        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = []
        if action.move_to_column_id:
            column_id = action.move_to_column_id
            steps.append((f"move:{column_id}", lambda: client.move_card(card_id, column_id)))
        for label_id in action.add_label_ids:
            steps.append((f"add-label:{label_id}", lambda lid=label_id: client.add_label(card_id, lid)))
        for label_id in action.remove_label_ids:
            steps.append(
                (f"remove-label:{label_id}", lambda lid=label_id: client.remove_label(card_id, lid))
            )

        failed: list[str] = []
        for name, step in steps:
            try:
                await step()
            except Exception as exc:
                logger.warning(f"[trello] Step {name} failed for card {card_id}: {exc}")
                failed.append(name)
        return failed

    async def _finish(
        self, link: TaskLink, kind: str, failed: list[str]
    ) -> events.MergeActionApplied:
        if self.board_cache is not None:
            try:
                await self.board_cache.refresh_project(link.project_path)
            except Exception as exc:
                logger.warning(f"[trello] Board refresh after {kind} failed: {exc}")

        event = events.MergeActionApplied(
            project_path=link.project_path,
            branch=link.branch,
            card_id=link.card_id,
            board_id=link.board_id,
            kind=kind,
            failed_steps=tuple(failed),
        )
        if self.hub is not None:
            self.hub.publish(events.MERGE_ACTION_APPLIED, event)
        return event

    def _spawn(self, coro: Awaitable, name: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()  # type: ignore[attr-defined]
            return
        task = loop.create_task(coro, name=name)  # type: ignore[arg-type]
        self._background.add(task)
        task.add_done_callback(self._background.discard)
