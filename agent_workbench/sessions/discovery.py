"""Find agent sessions that the CLIs have written to disk.

Claude writes ``~/.claude/projects/<path with / replaced by ->/<session>.jsonl``;
Codex writes ``~/.codex/sessions/<yyyy>/<mm>/<dd>/<rollout>.jsonl`` with the
working directory recorded in a ``session_meta`` row.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol

from loguru import logger

LABEL_MAX_LENGTH = 80
MIN_USER_MESSAGE_LENGTH = 5
CODEX_MAX_SCAN_LINES = 200
CODEX_MAX_DEPTH = 4

_CODEX_REQUEST_PREFIXES = (
    "## My request for Codex:\r\n",
    "## My request for Codex:\n",
    "## My request for Codex:",
)
_CODEX_BOOTSTRAP_PREFIXES = (
    "# AGENTS.md instructions for ",
    "# AGENTS",
    "# CLAUDE.md",
    "<environment_context>",
    "<permissions instructions>",
    "<app-context>",
    "<collaboration_mode>",
    "<INSTRUCTIONS>",
    "Warning: apply_patch was requested via exec_command.",
)


@dataclass(frozen=True)
class DiscoveredSession:
    session_id: str
    label: str
    timestamp: str


class SessionDiscovery(Protocol):
    """``discover_claude_sessions`` / ``discover_codex_sessions`` boundary."""

    async def discover(self, session_type: str, project_path: str) -> list[DiscoveredSession]: ...


# ------------------------------------------------------------------ #
# Label helpers                                                        #
# ------------------------------------------------------------------ #


def is_skippable_user_message(text: str) -> bool:
    return (
        not text
        or len(text) <= MIN_USER_MESSAGE_LENGTH
        or text.startswith("<")
        or text.startswith("[Request interrupted")
        or text.startswith("Base directory")
    )


def truncate_label(text: str) -> str:
    """First line, capped at LABEL_MAX_LENGTH characters."""
    lines = text.splitlines()
    first = lines[0] if lines else text
    if len(first) > LABEL_MAX_LENGTH:
        return first[: LABEL_MAX_LENGTH - 3] + "..."
    return first


def fallback_label(session_id: str) -> str:
    return f"Session {session_id[:8]}"


def extract_text(content: Any) -> str | None:
    """Text from a string, a list of content blocks, or a ``{"text": ...}`` object."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for item in content:
            if not isinstance(item, dict):
                continue
            if item.get("type") in ("text", "input_text", None) and isinstance(item.get("text"), str):
                return item["text"]
        return None
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    return None


def strip_codex_request_prefix(raw: str) -> str:
    trimmed = raw.strip()
    for prefix in _CODEX_REQUEST_PREFIXES:
        if trimmed.startswith(prefix):
            return trimmed[len(prefix):].strip()
    return trimmed


def is_codex_bootstrap_message(text: str) -> bool:
    lines = text.splitlines()
    first = lines[0].strip() if lines else ""
    if not first:
        return True
    return first.startswith(_CODEX_BOOTSTRAP_PREFIXES)


def _iter_json_lines(path: Path, limit: int | None = None) -> Iterator[tuple[int, dict]]:
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for index, line in enumerate(handle):
            if limit is not None and index > limit:
                break
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                yield index, obj


# ------------------------------------------------------------------ #
# Claude                                                               #
# ------------------------------------------------------------------ #


def claude_project_dir(claude_dir: Path, project_path: str) -> Path:
    return claude_dir / "projects" / project_path.replace("/", "-")


def parse_claude_session(path: Path, session_id: str) -> DiscoveredSession:
    label = ""
    timestamp = ""
    for _, obj in _iter_json_lines(path):
        if not timestamp and isinstance(obj.get("timestamp"), str):
            timestamp = obj["timestamp"]
        if obj.get("type") != "user" or obj.get("isMeta"):
            continue
        message = obj.get("message")
        text = extract_text(message.get("content") if isinstance(message, dict) else None)
        if text is None:
            continue
        trimmed = text.strip()
        if is_skippable_user_message(trimmed):
            continue
        label = truncate_label(trimmed)
        break
    return DiscoveredSession(
        session_id=session_id,
        label=label or fallback_label(session_id),
        timestamp=timestamp,
    )


def discover_claude_sessions(project_path: str, claude_dir: Path) -> list[DiscoveredSession]:
    sessions_dir = claude_project_dir(claude_dir, project_path)
    if not sessions_dir.is_dir():
        return []
    sessions = []
    for path in sessions_dir.iterdir():
        if path.suffix != ".jsonl" or not path.stem:
            continue
        try:
            sessions.append(parse_claude_session(path, path.stem))
        except OSError as exc:
            logger.debug(f"[discovery] Skipping {path}: {exc}")
    sessions.sort(key=lambda s: s.timestamp, reverse=True)
    return sessions


# ------------------------------------------------------------------ #
# Codex                                                                #
# ------------------------------------------------------------------ #


def _canonical(path: str) -> Path:
    try:
        return Path(path).resolve(strict=True)
    except OSError:
        return Path(path)


def _is_session_meta_row(obj: dict, index: int) -> bool:
    if index == 0 or obj.get("type") == "session_meta":
        return True
    item = obj.get("item")
    return isinstance(item, dict) and item.get("type") == "session_meta"


def _meta_candidates(obj: dict) -> list[dict]:
    item = obj.get("item") if isinstance(obj.get("item"), dict) else {}
    found = [item.get("meta"), obj.get("meta"), item.get("payload"), obj.get("payload")]
    return [c for c in found if isinstance(c, dict)]


def extract_codex_user_message(obj: dict) -> str | None:
    payload = obj.get("payload") if isinstance(obj.get("payload"), dict) else {}
    kind = obj.get("type")
    if kind == "response_item" and payload.get("role") == "user" and payload.get("type") == "message":
        return extract_text(payload.get("content"))
    if kind == "user":
        message = obj.get("message")
        return extract_text(message.get("content") if isinstance(message, dict) else None)
    item = obj.get("item")
    if isinstance(item, dict) and item.get("role") == "user":
        return extract_text(item.get("content"))
    if obj.get("role") == "user":
        return extract_text(obj.get("content"))
    if kind == "event_msg" and payload.get("type") == "user_message" and isinstance(payload.get("text"), str):
        return payload["text"]
    return None


def parse_codex_session(path: Path, project: Path) -> DiscoveredSession | None:
    """Parse one rollout file; None when it belongs to another directory."""
    session_id = ""
    timestamp = ""
    label = ""
    cwd_matches = False

    for index, obj in _iter_json_lines(path, limit=CODEX_MAX_SCAN_LINES):
        if _is_session_meta_row(obj, index):
            for meta in _meta_candidates(obj) + [obj]:
                cwd = meta.get("cwd")
                if isinstance(cwd, str) and not cwd_matches:
                    if _canonical(cwd) != project:
                        return None
                    cwd_matches = True
                if not session_id and isinstance(meta.get("id"), str):
                    session_id = meta["id"]
                if not timestamp and isinstance(meta.get("timestamp"), (str, int, float)):
                    timestamp = str(meta["timestamp"])
        if index == 0:
            continue
        raw = extract_codex_user_message(obj)
        if raw is None:
            continue
        trimmed = strip_codex_request_prefix(raw)
        if len(trimmed) <= MIN_USER_MESSAGE_LENGTH or is_codex_bootstrap_message(trimmed):
            continue
        label = truncate_label(trimmed)
        break

    if not cwd_matches:
        return None
    session_id = session_id or path.stem
    if not session_id:
        return None
    return DiscoveredSession(
        session_id=session_id,
        label=label or fallback_label(session_id),
        timestamp=timestamp,
    )


def collect_jsonl_files(directory: Path, max_depth: int) -> list[Path]:
    if max_depth <= 0 or not directory.is_dir():
        return []
    results: list[Path] = []
    try:
        entries = list(directory.iterdir())
    except OSError:
        return results
    for entry in entries:
        if entry.is_dir():
            results.extend(collect_jsonl_files(entry, max_depth - 1))
        elif entry.suffix == ".jsonl":
            results.append(entry)
    return results


def discover_codex_sessions(project_path: str, codex_dir: Path) -> list[DiscoveredSession]:
    sessions_dir = codex_dir / "sessions"
    if not sessions_dir.is_dir():
        return []
    project = _canonical(project_path)
    sessions = []
    for path in collect_jsonl_files(sessions_dir, CODEX_MAX_DEPTH):
        try:
            found = parse_codex_session(path, project)
        except OSError as exc:
            logger.debug(f"[discovery] Skipping {path}: {exc}")
            continue
        if found is not None:
            sessions.append(found)
    sessions.sort(key=lambda s: s.timestamp, reverse=True)
    return sessions


class LocalSessionDiscovery:
    """Reads session transcripts from the agents' home directories."""

    def __init__(self, claude_dir: Path | None = None, codex_dir: Path | None = None) -> None:
        self.claude_dir = claude_dir or Path.home() / ".claude"
        self.codex_dir = codex_dir or Path.home() / ".codex"

    async def discover(self, session_type: str, project_path: str) -> list[DiscoveredSession]:
        if session_type == "claude":
            return await asyncio.to_thread(discover_claude_sessions, project_path, self.claude_dir)
        if session_type == "codex":
            return await asyncio.to_thread(discover_codex_sessions, project_path, self.codex_dir)
        return []
