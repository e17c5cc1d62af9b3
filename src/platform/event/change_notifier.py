from typing import Callable, List

from src.platform.event.i_change_observer import ChangeCallback
from src.platform.logging.loguru_io import Logger


class ChangeNotifier:
    """Callback registry shared by the change observer transports"""

    def __init__(self, *, name: str) -> None:
        self._name = name
        self._callbacks: List[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def notify(self, key: str) -> None:
        for callback in list(self._callbacks):
            try:
                callback(key)
            except Exception as e:
                Logger.base.exception(f'⚠️ [{self._name}] Change callback failed for {key}: {e}')
