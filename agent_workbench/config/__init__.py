"""Configuration module for agent-workbench."""

from agent_workbench.config.loader import get_config_path, load_config, save_config
from agent_workbench.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
