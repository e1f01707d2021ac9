"""Load and save the JSON config file."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from agent_workbench.config.schema import Config


def get_config_path() -> Path:
    """Return the default config file path."""
    return Path.home() / ".agent-workbench" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load config from disk; environment variables fill keys the file omits.

    A missing or unreadable file yields the defaults.
    """
    target = path or get_config_path()
    data: dict = {}
    if target.exists():
        try:
            data = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"[config] Failed to read {target}: {exc}; using defaults")
            data = {}
    return Config(**data)


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write config to disk and return the path written."""
    target = path or get_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2),
        encoding="utf-8",
    )
    return target
