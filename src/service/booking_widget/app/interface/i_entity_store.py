"""
Entity Store Interface

Versioned, normalized local cache of activities, bookings and gift vouchers.
The store is the only writer of the persisted envelopes and the only emitter
of `<kind>-updated` events.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

import attrs

from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.domain.value_object.envelope import Envelope


@attrs.define(frozen=True)
class MutationContext:
    """Who is writing, recorded on the envelope and on created/updated entities"""

    user_id: Optional[str] = None
    organization_id: Optional[str] = None


class IEntityStore(ABC):
    """
    Repository interface for the local entity cache.

    Responsibilities:
    - Read with legacy-format migration (reads never raise)
    - Write a fresh envelope on every mutation, then emit `<kind>-updated`
    - Swallow and log persistence failures (mutations still return their result)
    """

    @abstractmethod
    def get_all(self, kind: EntityKind) -> List[Any]:
        """
        All valid entities of kind

        Note:
            - Malformed records are dropped silently
            - Falls back to legacy keys when the canonical key is absent or unparseable
        """
        pass

    @abstractmethod
    def get_by_id(self, kind: EntityKind, entity_id: str) -> Optional[Any]:
        pass

    @abstractmethod
    def get_envelope(self, kind: EntityKind) -> Optional[Envelope]:
        """Current canonical envelope, None if nothing has been written yet"""
        pass

    @abstractmethod
    def save(
        self, kind: EntityKind, data: Mapping[str, Any] | Any, *, context: Optional[MutationContext] = None
    ) -> Any:
        """
        Create (or upsert by id) one entity

        Args:
            data: raw record (camelCase, snake_case or legacy keys) or an entity

        Returns:
            The normalized entity as stored
        """
        pass

    @abstractmethod
    def update(
        self,
        kind: EntityKind,
        entity_id: str,
        partial: Mapping[str, Any],
        *,
        context: Optional[MutationContext] = None,
    ) -> Optional[Any]:
        """
        Merge partial into an existing entity

        Returns:
            Updated entity, or None (and no write) when entity_id is unknown
        """
        pass

    @abstractmethod
    def delete(
        self, kind: EntityKind, entity_id: str, *, context: Optional[MutationContext] = None
    ) -> bool:
        """Returns True if an entity was removed"""
        pass

    @abstractmethod
    def replace_all(
        self,
        kind: EntityKind,
        items: List[Mapping[str, Any] | Any],
        *,
        context: Optional[MutationContext] = None,
    ) -> List[Any]:
        """Replace the whole collection; returns the normalized entities kept"""
        pass

    @abstractmethod
    def clear_all(self, *, context: Optional[MutationContext] = None) -> None:
        """Write an empty envelope for every kind (legacy keys stay shadowed)"""
        pass
