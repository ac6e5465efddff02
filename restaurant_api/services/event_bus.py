from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """Synchronous in-process fan-out.

    Handlers run in subscription order on the emitting thread. One that raises
    is logged and skipped; the emitter never sees the error.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: Handler) -> Handler:
        with self._lock:
            registered = self._handlers.setdefault(event_name, [])
            if handler not in registered:
                registered.append(handler)
        return handler

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        with self._lock:
            registered = self._handlers.get(event_name)
            if registered and handler in registered:
                registered.remove(handler)

    def handlers_for(self, event_name: str) -> list[Handler]:
        with self._lock:
            return list(self._handlers.get(event_name, ()))

    def emit(self, event_name: str, payload: dict[str, Any]) -> int:
        """Deliver ``payload``; returns how many handlers completed."""
        handlers = self.handlers_for(event_name)
        if not handlers:
            logger.debug("no subscribers for %s", event_name)
            return 0

        delivered = 0
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "event handler %s failed for %s",
                    getattr(handler, "__name__", repr(handler)),
                    event_name,
                )
                continue
            delivered += 1
        return delivered


event_bus = EventBus()
