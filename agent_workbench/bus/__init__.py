"""Typed event bus."""

from agent_workbench.bus import events
from agent_workbench.bus.hub import EventHub

__all__ = ["EventHub", "events"]
