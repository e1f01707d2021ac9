"""Trello task links and merge automation."""

from agent_workbench.trello.api import BoardGateway, TrelloClient
from agent_workbench.trello.automation import MergeAutomation
from agent_workbench.trello.boards import BoardCache
from agent_workbench.trello.config import BoardConfigStore
from agent_workbench.trello.models import (
    BoardColumn,
    BoardConfig,
    BoardData,
    MergeAction,
    ProjectBoardConfig,
    TaskLink,
    TrelloBoard,
    TrelloCard,
    TrelloCredentials,
    TrelloLabel,
    TrelloList,
)

__all__ = [
    "BoardCache",
    "BoardColumn",
    "BoardConfig",
    "BoardConfigStore",
    "BoardData",
    "BoardGateway",
    "MergeAction",
    "MergeAutomation",
    "ProjectBoardConfig",
    "TaskLink",
    "TrelloBoard",
    "TrelloCard",
    "TrelloClient",
    "TrelloCredentials",
    "TrelloLabel",
    "TrelloList",
]
