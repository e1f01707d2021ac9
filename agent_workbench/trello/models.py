"""Trello board configuration and API shapes (camelCase on disk and wire)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _TrelloModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class TrelloCredentials(_TrelloModel):
    api_key: str
    token: str


class MergeAction(_TrelloModel):
    """Card changes applied when a linked branch merges (or gets linked)."""

    move_to_column_id: str | None = None
    move_to_column_name: str | None = None
    add_label_ids: tuple[str, ...] = ()
    remove_label_ids: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.move_to_column_id or self.add_label_ids or self.remove_label_ids)


class BoardConfig(_TrelloModel):
    board_id: str
    board_name: str = ""
    hidden_columns: tuple[str, ...] = ()
    link_action: MergeAction | None = None
    merge_action: MergeAction | None = None


class TaskLink(_TrelloModel):
    card_id: str
    board_id: str
    branch: str
    worktree_path: str | None = None
    project_path: str


class ProjectBoardConfig(_TrelloModel):
    boards: tuple[BoardConfig, ...] = ()
    task_links: tuple[TaskLink, ...] = ()

    def board(self, board_id: str) -> BoardConfig | None:
        return next((b for b in self.boards if b.board_id == board_id), None)

    def link_for_branch(self, branch: str) -> TaskLink | None:
        return next((link for link in self.task_links if link.branch == branch), None)

    def with_link(self, link: TaskLink) -> "ProjectBoardConfig":
        """Replace any link for the same branch."""
        others = tuple(t for t in self.task_links if t.branch != link.branch)
        return self.model_copy(update={"task_links": others + (link,)})


class TrelloBoard(_TrelloModel):
    id: str
    name: str = ""
    url: str = ""


class TrelloList(_TrelloModel):
    id: str
    name: str = ""
    pos: float = 0.0


class TrelloLabel(_TrelloModel):
    id: str
    name: str = ""
    color: str | None = None


class TrelloCard(_TrelloModel):
    id: str
    name: str = ""
    desc: str = ""
    id_list: str = ""
    url: str = ""
    labels: tuple[TrelloLabel, ...] = ()
    pos: float = 0.0
    due: str | None = None


class BoardColumn(_TrelloModel):
    column: TrelloList
    cards: tuple[TrelloCard, ...] = ()


class BoardData(_TrelloModel):
    board: TrelloBoard
    columns: tuple[BoardColumn, ...] = Field(default_factory=tuple)
