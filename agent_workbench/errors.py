"""Error taxonomy shared by the boundary gateways and the core components.

Gateways raise these; core components catch them, log, and keep the last
known good state. An expected absence (no new session yet, no PR for a
branch) is never an exception.
"""

from __future__ import annotations


class WorkbenchError(Exception):
    """Base class for all workbench errors."""


class CapabilityUnavailable(WorkbenchError):
    """An external integration is not installed or not authenticated."""


class TransientFetchFailure(WorkbenchError):
    """A boundary call failed (process exit, network, malformed output)."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConfigurationMissing(WorkbenchError):
    """No automation rule, task link or credentials are configured."""
