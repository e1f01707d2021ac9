"""Unix-socket intake for agent hook and notify events.

Each connection sends newline-delimited JSON envelopes::

    {"pane_id": "...", "hook": {...}}    # Claude hook payload
    {"pane_id": "...", "codex": {...}}   # Codex notify payload

Hook scripts installed in the agent config write to the socket; the bridge
turns envelopes into ``claude:hook`` / ``codex:notify`` bus events.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from loguru import logger

from agent_workbench.bus import events
from agent_workbench.bus.hub import EventHub

MAX_LINE_BYTES = 1 << 20


def parse_envelope(line: str) -> tuple[str, Any] | None:
    """Map one envelope to ``(topic, event)``; ``None`` if it is not usable."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    pane_id = data.get("pane_id") or data.get("paneId")
    if not isinstance(pane_id, str) or not pane_id:
        return None

    hook = data.get("hook")
    if isinstance(hook, dict):
        return events.CLAUDE_HOOK, events.ClaudeHook(
            pane_id=pane_id,
            session_id=_str_or_none(hook.get("session_id")),
            hook_event_name=_str_or_none(hook.get("hook_event_name")),
            hook_payload=hook,
        )

    codex = data.get("codex")
    if isinstance(codex, dict):
        session_id = codex.get("thread-id") or codex.get("thread_id")
        notify_event = codex.get("event") or codex.get("type")
        return events.CODEX_NOTIFY, events.CodexNotify(
            pane_id=pane_id,
            session_id=_str_or_none(session_id),
            notify_event=_str_or_none(notify_event),
            codex_payload=codex,
        )
    return None


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


class HookBridge:
    """Listens on a unix socket and publishes parsed envelopes to the hub."""

    def __init__(self, hub: EventHub, socket_path: Path) -> None:
        self.hub = hub
        self.socket_path = socket_path
        self._server: asyncio.AbstractServer | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        if self._server is not None:
            return
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self.socket_path.exists():
            self.socket_path.unlink()
        self._server = await asyncio.start_unix_server(
            self._handle_client, path=str(self.socket_path), limit=MAX_LINE_BYTES
        )
        logger.info(f"[hooks] Listening on {self.socket_path}")

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.close()
        await server.wait_closed()
        self.socket_path.unlink(missing_ok=True)
        logger.info("[hooks] Stopped")

    def handle_line(self, line: str) -> bool:
        """Publish one envelope; returns False when the line was skipped."""
        if not line.strip():
            return False
        parsed = parse_envelope(line)
        if parsed is None:
            logger.warning(f"[hooks] Skipping invalid envelope: {line[:200]!r}")
            return False
        topic, event = parsed
        return self.hub.publish(topic, event)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            while True:
                try:
                    raw = await reader.readline()
                except ValueError:
                    logger.warning("[hooks] Envelope exceeds line limit, dropping connection")
                    break
                if not raw:
                    break
                self.handle_line(raw.decode("utf-8", errors="replace"))
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            logger.debug(f"[hooks] Client disconnected: {exc}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
