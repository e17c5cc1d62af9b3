"""
Storage Sync Bridge

Turns external storage-key changes (another tab or process wrote the cache)
into the same bus events the local store emits. Canonical and legacy keys of
a kind map to one event name; subscribers cannot tell local from remote
origin and always re-read the store.
"""

from typing import Callable, Dict, List, Mapping, Optional, Sequence

from src.platform.event.i_change_observer import IChangeObserver
from src.platform.event.i_event_bus import IEventBus
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.driven_adapter.repo.legacy_source import ILegacySource
from src.service.booking_widget.driven_adapter.repo.storage_keys import CANONICAL_KEYS


class StorageSyncBridge:
    def __init__(
        self,
        *,
        event_bus: IEventBus,
        legacy_sources: Optional[Mapping[EntityKind, Sequence[ILegacySource]]] = None,
        canonical_keys: Mapping[EntityKind, str] = CANONICAL_KEYS,
    ) -> None:
        self._event_bus = event_bus
        self._canonical: Dict[str, EntityKind] = {key: kind for kind, key in canonical_keys.items()}
        self._legacy = legacy_sources or {}
        self._detach: List[Callable[[], None]] = []

    def kind_for_key(self, key: str) -> Optional[EntityKind]:
        if key in self._canonical:
            return self._canonical[key]
        for kind, sources in self._legacy.items():
            if any(source.matches(key) for source in sources):
                return kind
        return None

    def on_external_change(self, key: str) -> None:
        kind = self.kind_for_key(key)
        if kind is None:
            return
        Logger.base.debug(f'🔄 [SYNC] External change of {key} → {kind.event_name}')
        self._event_bus.emit(kind.event_name)

    def attach(self, observer: IChangeObserver) -> None:
        self._detach.append(observer.subscribe(self.on_external_change))

    def detach_all(self) -> None:
        for detach in self._detach:
            detach()
        self._detach.clear()
