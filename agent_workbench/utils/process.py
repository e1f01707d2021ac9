"""Run short-lived CLI commands (``git``, ``gh``) and capture stdout."""

from __future__ import annotations

import subprocess

from agent_workbench.errors import TransientFetchFailure


def run_command(
    args: list[str],
    cwd: str | None = None,
    timeout_s: float = 30.0,
    ok_codes: tuple[int, ...] = (0,),
) -> str:
    """Run *args* and return stripped stdout.

    Raises TransientFetchFailure on a missing binary, timeout or an exit code outside *ok_codes*;
    the message carries stderr so callers can match known phrases.
    """
    label = " ".join(args[:3])
    try:
        completed = subprocess.run(
            args,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout_s,
        )
    except FileNotFoundError as exc:
        raise TransientFetchFailure(label, f"command not found: {args[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise TransientFetchFailure(label, f"timed out after {timeout_s}s") from exc
    except OSError as exc:
        raise TransientFetchFailure(label, str(exc)) from exc

    if completed.returncode not in ok_codes:
        stderr = (completed.stderr or "").strip()
        stdout = (completed.stdout or "").strip()
        raise TransientFetchFailure(label, stderr or stdout or f"exit code {completed.returncode}")
    return (completed.stdout or "").strip()
