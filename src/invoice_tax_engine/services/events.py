"""Explicit notification of callers after a successful calculation.

Each dispatcher instance keeps its own subscribers; callers create one
and pass it to the services that should publish to it.
"""

from collections.abc import Callable
from typing import Any

from invoice_tax_engine.domain.events import EngineEvent
from invoice_tax_engine.logging_config import get_logger

logger = get_logger(__name__)

Handler = Callable[[Any], None]


class EventDispatcher:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}

    def subscribe(self, event_type: type, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a function that removes it again."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: EngineEvent) -> None:
        """Deliver the event to its handlers in subscription order.

        Handler exceptions propagate to the publisher.
        """
        handlers = list(self._handlers.get(type(event), ()))
        logger.debug(
            "event_published",
            event_type=type(event).__name__,
            handler_count=len(handlers),
        )
        for handler in handlers:
            handler(event)
