import asyncio
import logging
from typing import Callable, Iterable, Optional

from ams.services.backend import Backend
from ams.services.coordinator import DebouncedQueryCoordinator
from ams.services.events import ChangeEvent

logger = logging.getLogger(__name__)


class ReactiveRefreshBridge:
    """Re-runs a coordinator's query when the backend reports a matching change.

    Events may be published from any thread; each one is marshalled onto the
    loop the bridge was started on. Duplicate events only re-arm the
    coordinator's debounce timer, so at-least-once delivery is harmless.
    """

    def __init__(
        self,
        backend: Backend,
        event_kinds: Iterable[str],
        coordinator: DebouncedQueryCoordinator,
    ):
        self._backend = backend
        self._event_kinds = tuple(event_kinds)
        self._coordinator = coordinator
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribers: list[Callable[[], None]] = []
        self.events_seen = 0

    @property
    def active(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> None:
        if self.active:
            return
        self._loop = asyncio.get_running_loop()
        for kind in self._event_kinds:
            self._unsubscribers.append(self._backend.subscribe(kind, self._on_event))
        logger.debug("Refresh bridge listening for %s", ", ".join(self._event_kinds))

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _on_event(self, event: ChangeEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or self._coordinator.closed:
            return

        self.events_seen += 1
        logger.debug("Change event %s (id=%s) triggers refresh", event.kind, event.record_id)
        loop.call_soon_threadsafe(self._refresh)

    def _refresh(self) -> None:
        if not self._coordinator.closed:
            self._coordinator.refresh()
