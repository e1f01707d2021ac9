"""Agent hook intake."""

from agent_workbench.hooks.bridge import HookBridge, parse_envelope

__all__ = ["HookBridge", "parse_envelope"]
