"""Configuration schema for agent-workbench."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ActivityConfig(BaseModel):
    """Timing knobs for the output-heuristic activity classifier."""

    quiet_threshold_s: float = 1.0
    viewport_grace_s: float = 0.5
    typing_window_s: float = 2.0
    echo_window_s: float = 0.15
    echo_max_chars: int = 4
    submit_fallback_s: float = 30.0


class DiscoveryConfig(BaseModel):
    """Bounded session-id discovery poll."""

    interval_s: float = 2.0
    max_attempts: int = 30


class GitHubConfig(BaseModel):
    """GitHub status polling via the ``gh`` CLI."""

    enabled: bool = True
    command: str = "gh"
    slow_poll_s: float = 90.0
    fast_poll_s: float = 15.0
    debounce_s: float = 2.0
    command_timeout_s: float = 30.0
    notify_terminal_changes: bool = True


class TrelloConfig(BaseModel):
    """Trello board automation."""

    enabled: bool = True
    api_base: str = "https://api.trello.com/1"
    request_timeout_s: float = 15.0


class HooksConfig(BaseModel):
    """Local socket that agent hook scripts write to."""

    enabled: bool = True
    socket_path: str = ""


class NotificationsConfig(BaseModel):
    """Desktop notifications for check transitions and merge automation."""

    enabled: bool = True
    on_check_transition: bool = True
    on_merge_action: bool = True


class Config(BaseSettings):
    """Root configuration for agent-workbench."""

    data_dir: str = "~/.agent-workbench"
    activity: ActivityConfig = Field(default_factory=ActivityConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    trello: TrelloConfig = Field(default_factory=TrelloConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        return Path(self.data_dir).expanduser()

    @property
    def workspaces_file(self) -> Path:
        return self.data_path / "workspaces.json"

    @property
    def trello_dir(self) -> Path:
        return self.data_path / "trello"

    @property
    def hook_socket_path(self) -> Path:
        """Socket path, defaulting to ``<data dir>/hooks.sock``."""
        raw = (self.hooks.socket_path or "").strip()
        if raw:
            return Path(raw).expanduser()
        return self.data_path / "hooks.sock"

    model_config = SettingsConfigDict(
        env_prefix="AGENT_WORKBENCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )
