"""
In-process Event Bus Interface

Synchronous pub/sub used by the entity store to announce committed writes
(`activities-updated`, `bookings-updated`, ...) to every widget instance
living in the same process.
"""

from typing import Callable, Protocol


EventHandler = Callable[[str], None]


class IEventBus(Protocol):
    """
    Interface for the in-process event bus

    Handlers are invoked synchronously, in subscription order, from inside
    `emit`. A late subscriber never sees events emitted before it subscribed.
    """

    def subscribe(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register handler for event

        Returns:
            Zero-argument callable that removes the subscription
        """
        ...

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        """Remove handler. Safe to call for unknown handlers."""
        ...

    def emit(self, event: str) -> None:
        """
        Deliver event to all current handlers

        Note:
            - A raising handler is logged and does not stop delivery to others
        """
        ...
