"""
Unit tests for EntityStore

測試重點：
1. Envelope: every write bumps version, updatedAt strictly increases
2. Legacy migration: first usable legacy source wins, rewritten under the canonical key
3. Events: `<kind>-updated` after committed writes only
"""

from decimal import Decimal

import orjson
import pytest

from src.platform.exception.exceptions import PersistenceError
from src.platform.state.memory_storage import InMemoryStorageBackend
from src.service.booking_widget.app.interface.i_entity_store import MutationContext
from src.service.booking_widget.domain.enum import BookingStatus, EntityKind
from src.service.booking_widget.driven_adapter.repo.entity_store_impl import EntityStore
from src.service.booking_widget.driven_adapter.repo.storage_keys import (
    CANONICAL_KEYS,
    default_legacy_sources,
)
from test.constants import DEFAULT_ORGANIZATION_ID, ESCAPE_ROOM_ID, FROZEN_NOW
from test.service.booking_widget.unit.helpers import activity_record, booking_record


ACTIVITIES_KEY = CANONICAL_KEYS[EntityKind.ACTIVITIES]
BOOKINGS_KEY = CANONICAL_KEYS[EntityKind.BOOKINGS]


class FailingStorage(InMemoryStorageBackend):
    def set(self, key: str, value: str) -> None:
        raise PersistenceError(f'quota exceeded writing {key}')


def build_store(storage, event_bus) -> EntityStore:
    return EntityStore(
        storage=storage,
        event_bus=event_bus,
        default_organization_id=DEFAULT_ORGANIZATION_ID,
        legacy_sources=default_legacy_sources(),
        clock=lambda: FROZEN_NOW,
    )


@pytest.mark.unit
class TestEntityStoreWrites:
    def test_save_then_read_back(self, entity_store, recorded_events):
        # Act
        saved = entity_store.save(EntityKind.ACTIVITIES, activity_record())

        # Assert
        loaded = entity_store.get_by_id(EntityKind.ACTIVITIES, ESCAPE_ROOM_ID)
        assert loaded.id == saved.id
        assert loaded.name == saved.name
        assert loaded.schedule == saved.schedule
        assert [t.id for t in loaded.ticket_types] == ['adult', 'child']
        assert loaded.capacity == 8
        assert loaded.base_price == Decimal('30.00')
        assert recorded_events == ['activities-updated']

    def test_save_assigns_id_and_creation_stamp(self, entity_store):
        record = activity_record()
        del record['id']

        saved = entity_store.save(EntityKind.ACTIVITIES, record, context=MutationContext(user_id='admin-1'))

        assert saved.id
        assert saved.created_at == FROZEN_NOW
        assert saved.created_by == 'admin-1'

    def test_every_write_bumps_envelope_version(self, entity_store, storage):
        # Arrange
        entity_store.save(EntityKind.ACTIVITIES, activity_record())
        first = entity_store.get_envelope(EntityKind.ACTIVITIES)

        # Act
        entity_store.update(EntityKind.ACTIVITIES, ESCAPE_ROOM_ID, {'capacity': 10})
        second = entity_store.get_envelope(EntityKind.ACTIVITIES)

        # Assert
        assert first.version == 1
        assert second.version == 2
        # clock is frozen, yet updatedAt still moves forward
        assert second.updated_at > first.updated_at
        document = orjson.loads(storage.get(ACTIVITIES_KEY))
        assert document['version'] == 2
        assert document['organizationId'] == DEFAULT_ORGANIZATION_ID

    def test_save_upserts_by_id(self, entity_store):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())
        entity_store.save(EntityKind.ACTIVITIES, activity_record(name='The Vault II'))

        activities = entity_store.get_all(EntityKind.ACTIVITIES)
        assert len(activities) == 1
        assert activities[0].name == 'The Vault II'

    def test_update_merges_nested_schedule(self, entity_store):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())

        updated = entity_store.update(
            EntityKind.ACTIVITIES, ESCAPE_ROOM_ID, {'schedule': {'endTime': '18:00'}}
        )

        assert updated.schedule.start_time == '10:00'
        assert updated.schedule.end_time == '18:00'

    def test_update_unknown_id_returns_none_without_writing(self, entity_store, storage, recorded_events):
        result = entity_store.update(EntityKind.ACTIVITIES, 'missing', {'capacity': 3})

        assert result is None
        assert storage.get(ACTIVITIES_KEY) is None
        assert recorded_events == []

    def test_delete(self, entity_store, recorded_events):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())

        assert entity_store.delete(EntityKind.ACTIVITIES, 'missing') is False
        assert entity_store.delete(EntityKind.ACTIVITIES, ESCAPE_ROOM_ID) is True
        assert entity_store.get_all(EntityKind.ACTIVITIES) == []
        assert recorded_events == ['activities-updated', 'activities-updated']

    def test_replace_all_drops_invalid_and_duplicate_records(self, entity_store):
        kept = entity_store.replace_all(
            EntityKind.ACTIVITIES,
            [
                activity_record(),
                {'name': 'No identifier'},
                activity_record(name='Duplicate id'),
                activity_record(id='activity-2', name='Second'),
            ],
        )

        assert [a.id for a in kept] == [ESCAPE_ROOM_ID, 'activity-2']
        assert kept[0].name != 'Duplicate id'

    def test_clear_all_writes_empty_envelopes(self, storage, event_bus, recorded_events):
        # Arrange
        storage.set('admin_games', orjson.dumps([activity_record()]).decode())
        store = build_store(storage, event_bus)
        store.save(EntityKind.BOOKINGS, booking_record(booking_id='b-1', participants=2))
        recorded_events.clear()

        # Act
        store.clear_all()

        # Assert
        for kind in EntityKind:
            assert store.get_all(kind) == []
            assert orjson.loads(storage.get(CANONICAL_KEYS[kind]))['items'] == []
        # legacy data stays shadowed by the empty canonical envelope
        assert storage.get('admin_games') is not None
        assert recorded_events == [
            'activities-updated',
            'bookings-updated',
            'gift-vouchers-updated',
        ]

    def test_persistence_failure_is_logged_not_raised(self, event_bus, recorded_events):
        store = build_store(FailingStorage(), event_bus)

        saved = store.save(EntityKind.ACTIVITIES, activity_record())

        assert saved.id == ESCAPE_ROOM_ID
        assert recorded_events == []
        assert store.get_all(EntityKind.ACTIVITIES) == []


@pytest.mark.unit
class TestEntityStoreReads:
    def test_empty_storage_reads_empty(self, entity_store):
        for kind in EntityKind:
            assert entity_store.get_all(kind) == []
            assert entity_store.get_envelope(kind) is None

    def test_bare_array_under_canonical_key(self, storage, event_bus):
        storage.set(ACTIVITIES_KEY, orjson.dumps([activity_record()]).decode())

        store = build_store(storage, event_bus)

        assert [a.id for a in store.get_all(EntityKind.ACTIVITIES)] == [ESCAPE_ROOM_ID]
        assert store.get_envelope(EntityKind.ACTIVITIES) is None

    def test_legacy_recovery_is_rewritten_once_without_event(self, storage, event_bus, recorded_events):
        """
        Given: only a legacy flat array using old field names
        When: activities are read twice
        Then:
          - aliases are mapped (price → basePrice, maxPlayers → capacity)
          - the canonical key now holds a version 1 envelope
          - the second read does not rewrite again
          - no event is emitted
        """
        # Arrange
        legacy = [{'id': 'game-1', 'name': 'Lab Escape', 'price': '25', 'maxPlayers': 6, 'durationMinutes': '90 min'}]
        storage.set('admin_games', orjson.dumps(legacy).decode())
        store = build_store(storage, event_bus)

        # Act
        first = store.get_all(EntityKind.ACTIVITIES)
        canonical_after_first = storage.get(ACTIVITIES_KEY)
        second = store.get_all(EntityKind.ACTIVITIES)

        # Assert
        assert [a.id for a in first] == [a.id for a in second] == ['game-1']
        activity = second[0]
        assert activity.base_price == Decimal('25.00')
        assert activity.capacity == 6
        assert activity.duration_minutes == 90
        assert orjson.loads(canonical_after_first)['version'] == 1
        assert storage.get(ACTIVITIES_KEY) == canonical_after_first
        assert recorded_events == []

    def test_legacy_sources_are_tried_in_order(self, storage, event_bus):
        storage.set('bookingtms::games', orjson.dumps([{'name': 'no id'}]).decode())
        storage.set('admin_games', orjson.dumps([activity_record(id='from-admin')]).decode())
        storage.set('bookingtms_games_org-2', orjson.dumps([activity_record(id='from-prefix')]).decode())

        store = build_store(storage, event_bus)

        assert [a.id for a in store.get_all(EntityKind.ACTIVITIES)] == ['from-admin']

    def test_prefixed_legacy_key(self, storage, event_bus):
        storage.set('bookingtms_games_org-2', orjson.dumps([activity_record(id='from-prefix')]).decode())

        store = build_store(storage, event_bus)

        assert [a.id for a in store.get_all(EntityKind.ACTIVITIES)] == ['from-prefix']

    def test_canonical_empty_envelope_shadows_legacy(self, storage, event_bus):
        storage.set(
            ACTIVITIES_KEY,
            orjson.dumps({'version': 4, 'updatedAt': '2025-01-01T00:00:00Z', 'items': []}).decode(),
        )
        storage.set('admin_games', orjson.dumps([activity_record()]).decode())

        store = build_store(storage, event_bus)

        assert store.get_all(EntityKind.ACTIVITIES) == []

    def test_unparseable_canonical_falls_back_to_legacy(self, storage, event_bus):
        storage.set(ACTIVITIES_KEY, '{not json')
        storage.set('admin_games', orjson.dumps([activity_record()]).decode())

        store = build_store(storage, event_bus)

        assert [a.id for a in store.get_all(EntityKind.ACTIVITIES)] == [ESCAPE_ROOM_ID]

    def test_legacy_bookings_default_to_confirmed(self, storage, event_bus):
        legacy = [
            {
                'id': 'legacy-1',
                'gameId': ESCAPE_ROOM_ID,
                'date': '2025-11-20',
                'time': '10:00 AM',
                'partySize': 4,
                'total': '120',
            }
        ]
        storage.set('bookings', orjson.dumps(legacy).decode())

        booking = build_store(storage, event_bus).get_by_id(EntityKind.BOOKINGS, 'legacy-1')

        assert booking.activity_id == ESCAPE_ROOM_ID
        assert booking.participants == 4
        assert booking.total_price == Decimal('120.00')
        assert booking.status == BookingStatus.CONFIRMED

    def test_out_of_range_numbers_fall_back_to_defaults(self, storage, event_bus):
        """
        Given: legacy activities with a price beyond cent precision and an infinite slot interval
        When: activities are read
        Then: both records survive with the out-of-range fields reset to their defaults
        """
        # Arrange
        legacy = [
            activity_record(id='huge-price', basePrice=1e30),
            activity_record(id='endless-interval', schedule={'slotInterval': 'inf', 'startTime': '10:00'}),
        ]
        storage.set('admin_games', orjson.dumps(legacy).decode())
        store = build_store(storage, event_bus)

        # Act
        activities = {a.id: a for a in store.get_all(EntityKind.ACTIVITIES)}

        # Assert
        assert set(activities) == {'huge-price', 'endless-interval'}
        assert activities['huge-price'].base_price == Decimal('0.00')
        assert activities['endless-interval'].schedule.slot_interval == 0

    def test_overflowing_numeric_string_uses_fallback(self, storage, event_bus):
        legacy = [{'id': 'legacy-2', 'gameId': ESCAPE_ROOM_ID, 'date': '2025-11-20', 'time': '10:00 AM', 'partySize': 2, 'total': '9' * 400}]
        storage.set('bookings', orjson.dumps(legacy).decode())

        booking = build_store(storage, event_bus).get_by_id(EntityKind.BOOKINGS, 'legacy-2')

        assert booking.total_price == Decimal('0.00')
        assert booking.participants == 2
