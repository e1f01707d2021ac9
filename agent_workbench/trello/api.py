"""Trello REST client.

Every request carries ``key``/``token`` query parameters. Calls are blocking
``urllib`` requests pushed onto a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Protocol

from loguru import logger

from agent_workbench.errors import TransientFetchFailure
from agent_workbench.trello.models import (
    BoardColumn,
    BoardData,
    TrelloBoard,
    TrelloCard,
    TrelloCredentials,
    TrelloList,
)

DEFAULT_API_BASE = "https://api.trello.com/1"


class BoardGateway(Protocol):
    async def move_card(self, card_id: str, list_id: str) -> None: ...

    async def add_label(self, card_id: str, label_id: str) -> None: ...

    async def remove_label(self, card_id: str, label_id: str) -> None: ...

    async def fetch_board_data(
        self, board_id: str, hidden_columns: tuple[str, ...] = ()
    ) -> BoardData: ...


class TrelloClient:
    """Minimal Trello API surface used by merge automation and the board cache."""

    def __init__(
        self,
        credentials: TrelloCredentials,
        api_base: str = DEFAULT_API_BASE,
        timeout_s: float = 15.0,
    ) -> None:
        self.credentials = credentials
        self.api_base = api_base.rstrip("/")
        self.timeout_s = timeout_s

    # ------------------------------------------------------------------ #
    #  Card mutations                                                      #
    # ------------------------------------------------------------------ #

    async def move_card(self, card_id: str, list_id: str) -> None:
        await asyncio.to_thread(self._request, "PUT", f"/cards/{card_id}", {"idList": list_id})

    async def add_label(self, card_id: str, label_id: str) -> None:
        await asyncio.to_thread(
            self._request, "POST", f"/cards/{card_id}/idLabels", {"value": label_id}
        )

    async def remove_label(self, card_id: str, label_id: str) -> None:
        await asyncio.to_thread(self._request, "DELETE", f"/cards/{card_id}/idLabels/{label_id}")

    # ------------------------------------------------------------------ #
    #  Board reads                                                         #
    # ------------------------------------------------------------------ #

    async def fetch_board_data(
        self, board_id: str, hidden_columns: tuple[str, ...] = ()
    ) -> BoardData:
        return await asyncio.to_thread(self.fetch_board_data_sync, board_id, hidden_columns)

    def fetch_board_data_sync(
        self, board_id: str, hidden_columns: tuple[str, ...] = ()
    ) -> BoardData:
        board = TrelloBoard.model_validate(
            self._request("GET", f"/boards/{board_id}", {"fields": "id,name,url"})
        )
        lists = self._request(
            "GET", f"/boards/{board_id}/lists", {"fields": "id,name,pos", "filter": "open"}
        )
        hidden = set(hidden_columns)
        columns: list[BoardColumn] = []
        for raw_list in lists or []:
            column = TrelloList.model_validate(raw_list)
            if column.id in hidden:
                continue
            raw_cards = self._request(
                "GET",
                f"/lists/{column.id}/cards",
                {"fields": "id,name,desc,idList,url,labels,pos,due"},
            )
            cards = tuple(TrelloCard.model_validate(c) for c in raw_cards or [])
            columns.append(BoardColumn(column=column, cards=cards))
        return BoardData(board=board, columns=tuple(columns))

    # ------------------------------------------------------------------ #
    #  Transport                                                           #
    # ------------------------------------------------------------------ #

    def _url(self, path: str, params: dict[str, str] | None = None) -> str:
        query = {"key": self.credentials.api_key, "token": self.credentials.token}
        if params:
            query.update(params)
        return f"{self.api_base}{path}?{urllib.parse.urlencode(query)}"

    def _request(self, method: str, path: str, params: dict[str, str] | None = None) -> Any:
        label = f"trello {method} {path}"
        req = urllib.request.Request(
            url=self._url(path, params),
            headers={"Accept": "application/json"},
            method=method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read().decode("utf-8", errors="ignore")
        except urllib.error.HTTPError as exc:
            body_text = exc.read().decode("utf-8", errors="ignore")
            raise TransientFetchFailure(label, f"HTTP {exc.code}: {body_text or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise TransientFetchFailure(label, f"connection error: {exc.reason}") from exc
        except TimeoutError as exc:
            raise TransientFetchFailure(label, "timed out") from exc

        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.debug(f"[trello] Non-JSON response for {label}: {raw[:200]}")
            raise TransientFetchFailure(label, "malformed response") from exc
