"""Registry of session types a pane can host."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_TOKEN_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class AgentDef:
    """Session type metadata."""

    key: str
    label: str
    command: str
    env_override: str
    resume_args: str = ""
    strict_uuid: bool = True

    @property
    def is_agent(self) -> bool:
        return bool(self.resume_args)

    def resolve_command(self) -> str:
        """Resolve command from env override or default command."""
        value = os.getenv(self.env_override, "").strip()
        return value or self.command

    def new_session_command(self) -> str | None:
        """Startup command for a fresh session; the CLI assigns the id."""
        if not self.is_agent:
            return None
        return self.resolve_command()

    def resume_command(self, session_id: str) -> str:
        if not self.is_agent:
            raise ValueError(f"Session type '{self.key}' cannot be resumed")
        if not is_valid_session_id(session_id, strict=self.strict_uuid):
            raise ValueError(f"Invalid session ID: {session_id}")
        return f"{self.resolve_command()} {self.resume_args} {session_id}"


AGENT_DEFS: dict[str, AgentDef] = {
    "shell": AgentDef(
        key="shell",
        label="Terminal",
        command="",
        env_override="AGENT_WORKBENCH_SHELL_CMD",
    ),
    "claude": AgentDef(
        key="claude",
        label="Claude",
        command="claude",
        env_override="AGENT_WORKBENCH_CLAUDE_CMD",
        resume_args="--resume",
    ),
    "codex": AgentDef(
        key="codex",
        label="Codex",
        command="codex",
        env_override="AGENT_WORKBENCH_CODEX_CMD",
        resume_args="resume",
        strict_uuid=False,
    ),
}


def is_valid_session_id(session_id: str, strict: bool = True) -> bool:
    value = (session_id or "").strip()
    if strict:
        return bool(_UUID_RE.match(value))
    return bool(_TOKEN_RE.match(value))


def get_agent_def(session_type: str) -> AgentDef:
    """Get a session type definition by key."""
    key = (session_type or "").strip().lower()
    if key not in AGENT_DEFS:
        choices = ", ".join(sorted(AGENT_DEFS))
        raise ValueError(f"Unknown session type '{session_type}'. Expected one of: {choices}")
    return AGENT_DEFS[key]


def startup_command_for(session_type: str | None, session_id: str | None) -> str | None:
    """Resume when the id is known, otherwise start fresh."""
    if not session_type or session_type not in AGENT_DEFS:
        return None
    agent = AGENT_DEFS[session_type]
    if not agent.is_agent:
        return None
    if session_id:
        try:
            return agent.resume_command(session_id)
        except ValueError:
            return agent.new_session_command()
    return agent.new_session_command()
