"""In-process pub/sub with payload validation at the boundary."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from agent_workbench.bus.events import TOPIC_MODELS, BusEvent

EventHandler = Callable[[Any], None]


class EventHub:
    """Topic-keyed pub/sub.

    Payloads for known topics are coerced into their model; a payload that
    fails validation is logged and dropped. A handler that raises is logged
    and does not stop delivery to the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._handlers[topic].append(handler)

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    def publish(self, topic: str, payload: Any) -> bool:
        """Deliver *payload*; returns False when it was rejected."""
        event = self._coerce(topic, payload)
        if event is None:
            return False
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(event)
            except Exception as exc:
                logger.warning(f"[bus] Handler for {topic!r} failed: {exc}")
        return True

    def _coerce(self, topic: str, payload: Any) -> Any | None:
        model = TOPIC_MODELS.get(topic)
        if model is None or isinstance(payload, model):
            return payload
        if isinstance(payload, BusEvent):
            logger.warning(
                f"[bus] Dropping {type(payload).__name__} published on {topic!r}"
            )
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"[bus] Invalid payload on {topic!r}: {exc.error_count()} error(s)")
            return None
