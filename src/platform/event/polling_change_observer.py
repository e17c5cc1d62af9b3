"""
Polling Change Observer

Transport for storage backends without native notifications (a file-backed
cache shared by several processes). Compares snapshots of every key and
reports keys whose value appeared, changed or disappeared.

Writes made by this process are reported as well; subscribers re-read the
store, so a duplicate notification only costs one extra read.
"""

from typing import Callable, Dict, Optional

import anyio
from anyio.abc import TaskGroup

from src.platform.event.change_notifier import ChangeNotifier
from src.platform.event.i_change_observer import ChangeCallback
from src.platform.logging.loguru_io import Logger
from src.platform.state.i_storage_backend import IStorageBackend


class PollingChangeObserver:
    def __init__(self, *, storage: IStorageBackend, interval: float = 1.0) -> None:
        self._storage = storage
        self._interval = interval
        self._notifier = ChangeNotifier(name='POLLING_OBSERVER')
        self._snapshot: Optional[Dict[str, str]] = None

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._notifier.subscribe(callback)

    def _take_snapshot(self) -> Dict[str, str]:
        snapshot: Dict[str, str] = {}
        for key in self._storage.keys():
            value = self._storage.get(key)
            if value is not None:
                snapshot[key] = value
        return snapshot

    def poll_once(self) -> list[str]:
        """Diff against previous snapshot; the first call only records a baseline"""
        current = self._take_snapshot()
        previous, self._snapshot = self._snapshot, current
        if previous is None:
            return []

        changed = sorted(
            key
            for key in previous.keys() | current.keys()
            if previous.get(key) != current.get(key)
        )
        for key in changed:
            self._notifier.notify(key)
        if changed:
            Logger.base.debug(f'🔄 [POLLING_OBSERVER] Detected changes: {changed}')
        return changed

    async def start(self, *, task_group: TaskGroup) -> None:
        """Record the baseline now so writes made after start are reported"""
        if self._snapshot is None:
            self.poll_once()
        task_group.start_soon(self.run)  # pyrefly: ignore[bad-argument-type]
        Logger.base.info(f'🔔 [POLLING_OBSERVER] Started (interval={self._interval}s)')

    async def run(self) -> None:
        """Poll until cancelled"""
        if self._snapshot is None:
            self.poll_once()
        while True:
            await anyio.sleep(self._interval)
            self.poll_once()
