"""Session lifecycle and discovery."""

from agent_workbench.sessions.discovery import (
    DiscoveredSession,
    LocalSessionDiscovery,
    SessionDiscovery,
)
from agent_workbench.sessions.lifecycle import SessionLifecycle

__all__ = [
    "DiscoveredSession",
    "LocalSessionDiscovery",
    "SessionDiscovery",
    "SessionLifecycle",
]
