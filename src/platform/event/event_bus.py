"""
In-memory Event Bus Implementation

One instance per composition root (see Container.event_bus); every store and
widget controller built by that container shares it.
"""

from typing import Callable, Dict, List

from src.platform.event.i_event_bus import EventHandler
from src.platform.logging.loguru_io import Logger


class InMemoryEventBus:
    """
    Synchronous pub/sub keyed by event name

    Architecture:
    - EntityStore write → emit('<kind>-updated') → widget handlers re-read the store
    - StorageSyncBridge → emit(...) for changes made by other processes
    - No queueing or replay; emit returns after every handler has run
    """

    def __init__(self) -> None:
        # event name → handlers, in subscription order
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event: str, handler: EventHandler) -> Callable[[], None]:
        self._handlers.setdefault(event, []).append(handler)
        Logger.base.debug(
            f'📡 [EVENT_BUS] Subscribed to {event} (total handlers: {len(self._handlers[event])})'
        )

        def _unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return _unsubscribe

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event]
            Logger.base.debug(f'📡 [EVENT_BUS] Cleaned up empty handler list for {event}')

    def emit(self, event: str) -> None:
        # Copy so handlers may (un)subscribe while being notified
        handlers = list(self._handlers.get(event, ()))
        if not handlers:
            Logger.base.debug(f'📡 [EVENT_BUS] No handlers for {event}')
            return

        failed = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                failed += 1
                Logger.base.exception(
                    f'⚠️ [EVENT_BUS] Handler {getattr(handler, "__qualname__", handler)} '
                    f'failed for {event}: {e}'
                )

        Logger.base.debug(
            f'📡 [EVENT_BUS] Emitted {event}: delivered={len(handlers) - failed}, failed={failed}'
        )

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))
