"""
External Change Observer Interface

Reports storage keys changed by *another* process or tab. The transport
(shared memory handle, polling, Redis pub/sub) is an implementation detail.
"""

from typing import Callable, Protocol


ChangeCallback = Callable[[str], None]


class IChangeObserver(Protocol):
    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register callback(key) for external changes

        Returns:
            Zero-argument callable that removes the callback
        """
        ...
