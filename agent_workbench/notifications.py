"""Desktop notification helper with graceful fallback."""

from __future__ import annotations

from loguru import logger


def send_notification(title: str, message: str) -> bool:
    """Send a desktop notification if plyer and a backend are available."""
    try:
        from plyer import notification  # type: ignore[import-not-found]

        notification.notify(title=title, message=message, app_name="agent-workbench", timeout=6)
        return True
    except Exception as exc:
        logger.debug(f"[notify] Desktop notification unavailable: {exc}")
        return False
