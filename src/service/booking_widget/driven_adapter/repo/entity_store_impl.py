from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import attrs
import orjson
import uuid_utils

from src.platform.event.i_event_bus import IEventBus
from src.platform.exception.exceptions import PersistenceError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.platform.state.i_storage_backend import IStorageBackend
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore, MutationContext
from src.service.booking_widget.domain.entity_normalizer import (
    ENTITY_ALIASES,
    TO_RECORD,
    canonical_record,
    normalize_activity,
    normalize_booking,
    normalize_gift_voucher,
)
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.domain.value_object.envelope import Envelope
from src.service.booking_widget.driven_adapter.repo.legacy_source import ILegacySource
from src.service.booking_widget.driven_adapter.repo.storage_keys import CANONICAL_KEYS


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntityStore(IEntityStore):
    """
    Envelope-backed entity store

    Read path:
    1. Canonical key (envelope, or a bare array) is authoritative whenever it parses
    2. Otherwise legacy sources in order; first batch with ≥1 valid record wins
       and is rewritten under the canonical key (no event)

    Write path:
    1. Re-read current state, apply the mutation
    2. Persist successor envelope (version + 1, strictly later updatedAt)
    3. Emit `<kind>-updated` synchronously, only if the write succeeded
    """

    def __init__(
        self,
        *,
        storage: IStorageBackend,
        event_bus: IEventBus,
        default_organization_id: str,
        legacy_sources: Optional[Mapping[EntityKind, Sequence[ILegacySource]]] = None,
        canonical_keys: Mapping[EntityKind, str] = CANONICAL_KEYS,
        schedule_defaults: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.storage = storage
        self.event_bus = event_bus
        self.default_organization_id = default_organization_id
        self.legacy_sources: Dict[EntityKind, List[ILegacySource]] = {
            kind: list(sources) for kind, sources in (legacy_sources or {}).items()
        }
        self.canonical_keys = dict(canonical_keys)
        self.schedule_defaults = schedule_defaults
        self.clock = clock

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def _normalize(self, kind: EntityKind, raw: Any) -> Optional[Any]:
        try:
            if kind == EntityKind.ACTIVITIES:
                return normalize_activity(
                    raw,
                    default_organization_id=self.default_organization_id,
                    schedule_defaults=self.schedule_defaults,
                )
            if kind == EntityKind.BOOKINGS:
                return normalize_booking(raw, default_organization_id=self.default_organization_id)
            return normalize_gift_voucher(raw, default_organization_id=self.default_organization_id)
        except (TypeError, ValueError, ArithmeticError) as e:
            Logger.base.warning(f'⚠️ [STORE] Dropping malformed {kind} record: {e}')
            return None

    def _normalize_all(self, kind: EntityKind, records: Sequence[Any]) -> List[Any]:
        """Normalize, drop invalid, keep the first occurrence of each id"""
        entities: Dict[str, Any] = {}
        for raw in records:
            entity = self._normalize(kind, raw)
            if entity is not None and entity.id not in entities:
                entities[entity.id] = entity
        return list(entities.values())

    def _to_entity(
        self, kind: EntityKind, data: Mapping[str, Any] | Any, *, stamp: Dict[str, Any]
    ) -> Any:
        if attrs.has(type(data)):
            record = TO_RECORD[kind](data)
        elif isinstance(data, Mapping):
            record = canonical_record(data, ENTITY_ALIASES[kind])
        else:
            raise ValidationError(f'Unsupported {kind} input: {type(data).__name__}')

        if not record.get('id'):
            record['id'] = str(uuid_utils.uuid7())
        for key, value in stamp.items():
            if record.get(key) is None:
                record[key] = value

        entity = self._normalize(kind, record)
        if entity is None:
            raise ValidationError(f'Invalid {kind} input')
        return entity

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _load(self, kind: EntityKind) -> Tuple[Optional[Envelope], List[Any]]:
        key = self.canonical_keys[kind]
        raw = self.storage.get(key)
        if raw is not None:
            try:
                document = orjson.loads(raw)
            except orjson.JSONDecodeError:
                document = None
                Logger.base.warning(f'⚠️ [STORE] Unparseable canonical value at {key}')
            if isinstance(document, list):
                return None, self._normalize_all(kind, document)
            if (envelope := Envelope.from_document(document)) is not None:
                return envelope, self._normalize_all(kind, envelope.items)

        for source in self.legacy_sources.get(kind, []):
            for records in source.candidates(self.storage):
                entities = self._normalize_all(kind, records)
                if not entities:
                    continue
                Logger.base.info(
                    f'📦 [STORE] Recovered {len(entities)} {kind} from {source!r}, '
                    f'rewriting under {key}'
                )
                envelope = self._persist(kind, entities, previous=None, context=None)
                return envelope, entities

        return None, []

    def get_all(self, kind: EntityKind) -> List[Any]:
        return self._load(kind)[1]

    def get_by_id(self, kind: EntityKind, entity_id: str) -> Optional[Any]:
        for entity in self.get_all(kind):
            if entity.id == entity_id:
                return entity
        return None

    def get_envelope(self, kind: EntityKind) -> Optional[Envelope]:
        return self._load(kind)[0]

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _persist(
        self,
        kind: EntityKind,
        entities: Sequence[Any],
        *,
        previous: Optional[Envelope],
        context: Optional[MutationContext],
    ) -> Optional[Envelope]:
        """Write successor envelope; None when the storage write failed"""
        items = tuple(TO_RECORD[kind](entity) for entity in entities)
        organization_id = (
            (context and context.organization_id)
            or (previous and previous.organization_id)
            or (entities[0].organization_id if entities else None)
            or self.default_organization_id
        )
        updated_by = context.user_id if context else None
        now = self.clock()
        envelope = (
            previous.successor(
                items=items, now=now, organization_id=organization_id, updated_by=updated_by
            )
            if previous
            else Envelope.first(
                items=items, now=now, organization_id=organization_id, updated_by=updated_by
            )
        )

        try:
            self.storage.set(
                self.canonical_keys[kind], orjson.dumps(envelope.to_document()).decode('utf-8')
            )
        except PersistenceError as e:
            Logger.base.error(f'❌ [STORE] Failed to persist {kind}: {e.message}')
            return None
        return envelope

    def _commit(
        self,
        kind: EntityKind,
        entities: Sequence[Any],
        *,
        previous: Optional[Envelope],
        context: Optional[MutationContext],
    ) -> None:
        if self._persist(kind, entities, previous=previous, context=context) is not None:
            self.event_bus.emit(kind.event_name)

    def _stamp(self, kind: EntityKind, context: Optional[MutationContext], *, created: bool) -> Dict[str, Any]:
        now = self.clock().isoformat()
        user_id = context.user_id if context else None
        if kind == EntityKind.ACTIVITIES:
            stamp = {'updatedAt': now, 'updatedBy': user_id}
            if created:
                stamp |= {'createdAt': now, 'createdBy': user_id}
            return stamp
        if kind == EntityKind.BOOKINGS:
            return {'createdAt': now, 'updatedAt': now} if created else {'updatedAt': now}
        return {'purchaseDate': now} if created else {}

    @Logger.io
    def save(
        self,
        kind: EntityKind,
        data: Mapping[str, Any] | Any,
        *,
        context: Optional[MutationContext] = None,
    ) -> Any:
        previous, entities = self._load(kind)
        entity = self._to_entity(kind, data, stamp=self._stamp(kind, context, created=True))

        for index, existing in enumerate(entities):
            if existing.id == entity.id:
                entities[index] = entity
                break
        else:
            entities.append(entity)

        self._commit(kind, entities, previous=previous, context=context)
        return entity

    @Logger.io
    def update(
        self,
        kind: EntityKind,
        entity_id: str,
        partial: Mapping[str, Any],
        *,
        context: Optional[MutationContext] = None,
    ) -> Optional[Any]:
        previous, entities = self._load(kind)
        for index, existing in enumerate(entities):
            if existing.id == entity_id:
                break
        else:
            Logger.base.warning(f'⚠️ [STORE] update: {kind} {entity_id} not found')
            return None

        record = TO_RECORD[kind](existing)
        changes = canonical_record(partial, ENTITY_ALIASES[kind])
        # nested schedule merges field by field
        if isinstance(changes.get('schedule'), Mapping) and isinstance(record.get('schedule'), Mapping):
            changes['schedule'] = {**record['schedule'], **changes['schedule']}
        merged = {**record, **changes, 'id': entity_id}
        merged |= self._stamp(kind, context, created=False)

        entity = self._normalize(kind, merged)
        if entity is None:
            raise ValidationError(f'Invalid {kind} update for {entity_id}')
        entities[index] = entity

        self._commit(kind, entities, previous=previous, context=context)
        return entity

    @Logger.io
    def delete(
        self, kind: EntityKind, entity_id: str, *, context: Optional[MutationContext] = None
    ) -> bool:
        previous, entities = self._load(kind)
        remaining = [entity for entity in entities if entity.id != entity_id]
        if len(remaining) == len(entities):
            return False
        self._commit(kind, remaining, previous=previous, context=context)
        return True

    @Logger.io
    def replace_all(
        self,
        kind: EntityKind,
        items: List[Mapping[str, Any] | Any],
        *,
        context: Optional[MutationContext] = None,
    ) -> List[Any]:
        previous, _ = self._load(kind)
        records = [
            TO_RECORD[kind](item) if attrs.has(type(item)) else item for item in items
        ]
        entities = self._normalize_all(kind, records)
        self._commit(kind, entities, previous=previous, context=context)
        Logger.base.info(f'📦 [STORE] Replaced {kind}: {len(entities)} kept of {len(items)}')
        return entities

    @Logger.io
    def clear_all(self, *, context: Optional[MutationContext] = None) -> None:
        for kind in EntityKind:
            previous, _ = self._load(kind)
            self._commit(kind, [], previous=previous, context=context)
