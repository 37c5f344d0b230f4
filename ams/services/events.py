"""
In-process push channel for row-level change events.

Subscribers register for an event kind such as ``"grades.update"`` or for
``"*"``. Delivery is synchronous on the publishing thread; subscribers that
live on an event loop must hop back onto it themselves.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str  # "insert" | "update" | "delete"
    record_id: Optional[int] = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def kind(self) -> str:
        return f"{self.table}.{self.action}"


EventCallback = Callable[[ChangeEvent], None]


class EventChannel:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(list)

    def subscribe(self, event_kind: str, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` and return a handle that unsubscribes it."""
        with self._lock:
            self._subscribers[event_kind].append(callback)
        logger.debug("Subscribed %r to %s", callback, event_kind)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(event_kind, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event.kind, ()))
            callbacks += self._subscribers.get(WILDCARD, ())

        logger.debug("Publishing %s (id=%s) to %d subscriber(s)", event.kind, event.record_id, len(callbacks))
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber for %s failed", event.kind)

    def subscriber_count(self, event_kind: Optional[str] = None) -> int:
        with self._lock:
            if event_kind is not None:
                return len(self._subscribers.get(event_kind, ()))
            return sum(len(callbacks) for callbacks in self._subscribers.values())
