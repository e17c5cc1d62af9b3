"""
In-memory storage backends.

`InMemoryStorageBackend` is a plain dict for single-instance use.
`SharedMemoryStorage` emulates browser localStorage shared by several tabs:
every tab handle reads the same data, and a write through one handle is
reported to every *other* handle's change subscribers.
"""

from typing import Callable, Dict, List, Optional

from src.platform.event.change_notifier import ChangeNotifier
from src.platform.event.i_change_observer import ChangeCallback
from src.platform.logging.loguru_io import Logger


class InMemoryStorageBackend:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class SharedMemoryStorage:
    """Data shared by all tab handles opened from it"""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})
        self._tabs: List['MemoryTabStorage'] = []

    def open_tab(self) -> 'MemoryTabStorage':
        tab = MemoryTabStorage(shared=self, tab_id=len(self._tabs) + 1)
        self._tabs.append(tab)
        return tab

    def close_tab(self, tab: 'MemoryTabStorage') -> None:
        if tab in self._tabs:
            self._tabs.remove(tab)

    def broadcast(self, key: str, *, origin: 'MemoryTabStorage') -> None:
        for tab in list(self._tabs):
            if tab is not origin:
                tab.notifier.notify(key)
        Logger.base.debug(
            f'🗂️ [SHARED_STORAGE] {key} changed by tab {origin.tab_id} '
            f'(notified {len(self._tabs) - 1} tabs)'
        )


class MemoryTabStorage:
    """One tab's view: IStorageBackend and IChangeObserver at once"""

    def __init__(self, *, shared: SharedMemoryStorage, tab_id: int) -> None:
        self._shared = shared
        self.tab_id = tab_id
        self.notifier = ChangeNotifier(name=f'TAB_{tab_id}')

    def get(self, key: str) -> Optional[str]:
        return self._shared.data.get(key)

    def set(self, key: str, value: str) -> None:
        self._shared.data[key] = value
        self._shared.broadcast(key, origin=self)

    def remove(self, key: str) -> None:
        if self._shared.data.pop(key, None) is not None:
            self._shared.broadcast(key, origin=self)

    def keys(self) -> List[str]:
        return list(self._shared.data)

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        return self.notifier.subscribe(callback)
