"""Filesystem helpers."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    """Create directory if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def encode_project_path(project_path: str) -> str:
    """Flatten a path into a file name: separators become ``-``, drive colons drop."""
    return project_path.replace("\\", "-").replace("/", "-").replace(":", "")


def read_json(path: Path) -> Any | None:
    """Read a JSON file; ``None`` when missing, empty or unparseable."""
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON via a temp file and rename so readers never see a partial file."""
    ensure_dir(path.parent)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
