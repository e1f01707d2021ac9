"""Per-project board configuration and credentials on disk.

Layout::

    <data dir>/trello/
        credentials.json
        projects/<encoded project path>.json
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from agent_workbench.errors import ConfigurationMissing
from agent_workbench.trello.models import ProjectBoardConfig, TaskLink, TrelloCredentials
from agent_workbench.utils.helpers import encode_project_path, read_json, write_json_atomic


class BoardConfigStore:
    """Reads and writes board config; nothing is cached."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def credentials_path(self) -> Path:
        return self.root / "credentials.json"

    def project_config_path(self, project_path: str) -> Path:
        return self.root / "projects" / f"{encode_project_path(project_path)}.json"

    def load_credentials(self) -> TrelloCredentials | None:
        payload = read_json(self.credentials_path)
        if payload is None:
            return None
        try:
            return TrelloCredentials.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"[trello] Invalid credentials file: {exc.error_count()} error(s)")
            return None

    def require_credentials(self) -> TrelloCredentials:
        credentials = self.load_credentials()
        if credentials is None:
            raise ConfigurationMissing(f"No Trello credentials in {self.credentials_path}")
        return credentials

    def save_credentials(self, credentials: TrelloCredentials) -> None:
        write_json_atomic(self.credentials_path, credentials.model_dump(by_alias=True))

    def load_project_config(self, project_path: str) -> ProjectBoardConfig:
        """Missing or unreadable config reads as an empty one."""
        path = self.project_config_path(project_path)
        payload = read_json(path)
        if payload is None:
            return ProjectBoardConfig()
        try:
            return ProjectBoardConfig.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"[trello] Invalid board config {path}: {exc.error_count()} error(s)")
            return ProjectBoardConfig()

    def save_project_config(self, project_path: str, config: ProjectBoardConfig) -> None:
        write_json_atomic(
            self.project_config_path(project_path),
            config.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    def upsert_task_link(self, link: TaskLink) -> ProjectBoardConfig:
        config = self.load_project_config(link.project_path).with_link(link)
        self.save_project_config(link.project_path, config)
        return config
