"""Cached board snapshots for projects with board config."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from agent_workbench.trello.api import BoardGateway
from agent_workbench.trello.config import BoardConfigStore
from agent_workbench.trello.models import BoardData, TrelloCredentials

ClientFactory = Callable[[TrelloCredentials], BoardGateway]


class BoardCache:
    """Holds the latest ``BoardData`` per board id.

    A failed refresh keeps the previous snapshot for that board.
    """

    def __init__(self, config_store: BoardConfigStore, client_factory: ClientFactory) -> None:
        self.config_store = config_store
        self.client_factory = client_factory
        self._projects: set[str] = set()
        self._boards: dict[str, BoardData] = {}

    def track(self, project_path: str) -> None:
        self._projects.add(project_path)

    def untrack(self, project_path: str) -> None:
        self._projects.discard(project_path)

    @property
    def projects(self) -> frozenset[str]:
        return frozenset(self._projects)

    def board(self, board_id: str) -> BoardData | None:
        return self._boards.get(board_id)

    async def refresh_project(self, project_path: str) -> int:
        """Refetch every board configured for ``project_path``; returns boards updated."""
        credentials = self.config_store.load_credentials()
        if credentials is None:
            return 0
        self.track(project_path)
        client = self.client_factory(credentials)
        config = self.config_store.load_project_config(project_path)
        updated = 0
        for board in config.boards:
            try:
                data = await client.fetch_board_data(board.board_id, board.hidden_columns)
            except Exception as exc:
                logger.warning(f"[trello] Board {board.board_id} refresh failed: {exc}")
                continue
            self._boards[board.board_id] = data
            updated += 1
        return updated

    async def refresh_all(self) -> int:
        total = 0
        for project_path in sorted(self._projects):
            total += await self.refresh_project(project_path)
        return total
