"""
Unit tests for in-process event delivery and cross-tab / cross-process propagation

Tests the synchronous event bus, the change observers and the bridge that
maps storage keys back to `<kind>-updated` events.
"""

import orjson
import pytest

from src.platform.event.event_bus import InMemoryEventBus
from src.platform.event.polling_change_observer import PollingChangeObserver
from src.platform.event.redis_change_observer import RedisChangeObserver
from src.platform.state.file_storage import FileStorageBackend
from src.platform.state.memory_storage import InMemoryStorageBackend, SharedMemoryStorage
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.driven_adapter.repo.entity_store_impl import EntityStore
from src.service.booking_widget.driven_adapter.repo.storage_keys import default_legacy_sources
from src.service.booking_widget.driven_adapter.sync.storage_sync_bridge import StorageSyncBridge
from test.constants import DEFAULT_ORGANIZATION_ID, ESCAPE_ROOM_ID, FROZEN_NOW
from test.service.booking_widget.unit.helpers import activity_record


@pytest.mark.unit
class TestInMemoryEventBus:
    def test_handlers_run_in_subscription_order(self):
        bus = InMemoryEventBus()
        calls: list[str] = []
        bus.subscribe('activities-updated', lambda event: calls.append(f'first:{event}'))
        bus.subscribe('activities-updated', lambda event: calls.append(f'second:{event}'))

        bus.emit('activities-updated')

        assert calls == ['first:activities-updated', 'second:activities-updated']

    def test_failing_handler_does_not_stop_delivery(self):
        bus = InMemoryEventBus()
        calls: list[str] = []

        def broken(event: str) -> None:
            raise RuntimeError('boom')

        bus.subscribe('bookings-updated', broken)
        bus.subscribe('bookings-updated', calls.append)

        bus.emit('bookings-updated')

        assert calls == ['bookings-updated']

    def test_unsubscribe_stops_delivery(self):
        bus = InMemoryEventBus()
        calls: list[str] = []
        unsubscribe = bus.subscribe('bookings-updated', calls.append)

        unsubscribe()
        unsubscribe()  # idempotent
        bus.emit('bookings-updated')

        assert calls == []
        assert bus.handler_count('bookings-updated') == 0

    def test_late_subscriber_misses_earlier_events(self):
        bus = InMemoryEventBus()
        bus.emit('activities-updated')
        calls: list[str] = []

        bus.subscribe('activities-updated', calls.append)

        assert calls == []

    def test_emit_without_handlers_is_a_no_op(self):
        InMemoryEventBus().emit('gift-vouchers-updated')


@pytest.mark.unit
class TestStorageSyncBridge:
    @pytest.fixture
    def bus_events(self):
        bus = InMemoryEventBus()
        events: list[str] = []
        for kind in EntityKind:
            bus.subscribe(kind.event_name, events.append)
        return bus, events

    def test_canonical_and_legacy_keys_map_to_kind_events(self, bus_events):
        bus, events = bus_events
        bridge = StorageSyncBridge(event_bus=bus, legacy_sources=default_legacy_sources())

        bridge.on_external_change('bookingtms::activities')
        bridge.on_external_change('admin_games')
        bridge.on_external_change('bookingtms_games_org-9')
        bridge.on_external_change('bookings')
        bridge.on_external_change('giftVouchers')
        bridge.on_external_change('unrelated-key')

        assert events == [
            'activities-updated',
            'activities-updated',
            'activities-updated',
            'bookings-updated',
            'gift-vouchers-updated',
        ]

    def test_write_in_one_tab_notifies_the_other_tab(self):
        """
        Given: two widget tabs sharing one storage, each with its own bus and store
        When: tab A saves an activity
        Then:
          - tab B's bus emits activities-updated
          - tab B reads the new activity
          - tab A is not notified twice through its own observer
        """
        # Arrange
        shared = SharedMemoryStorage()
        tab_a, tab_b = shared.open_tab(), shared.open_tab()
        bus_a, bus_b = InMemoryEventBus(), InMemoryEventBus()
        store_a = EntityStore(
            storage=tab_a,
            event_bus=bus_a,
            default_organization_id=DEFAULT_ORGANIZATION_ID,
            clock=lambda: FROZEN_NOW,
        )
        store_b = EntityStore(
            storage=tab_b,
            event_bus=bus_b,
            default_organization_id=DEFAULT_ORGANIZATION_ID,
            clock=lambda: FROZEN_NOW,
        )
        for tab, bus in ((tab_a, bus_a), (tab_b, bus_b)):
            StorageSyncBridge(event_bus=bus).attach(tab)

        events_a: list[str] = []
        events_b: list[str] = []
        bus_a.subscribe('activities-updated', events_a.append)
        bus_b.subscribe(
            'activities-updated',
            lambda event: events_b.append(
                f'{event}:{len(store_b.get_all(EntityKind.ACTIVITIES))}'
            ),
        )

        # Act
        store_a.save(EntityKind.ACTIVITIES, activity_record())

        # Assert
        assert events_a == ['activities-updated']
        assert events_b == ['activities-updated:1']
        assert store_b.get_by_id(EntityKind.ACTIVITIES, ESCAPE_ROOM_ID) is not None

    def test_detach_all(self, bus_events):
        bus, events = bus_events
        shared = SharedMemoryStorage()
        writer, reader = shared.open_tab(), shared.open_tab()
        bridge = StorageSyncBridge(event_bus=bus)
        bridge.attach(reader)

        bridge.detach_all()
        writer.set('bookingtms::bookings', '[]')

        assert events == []


@pytest.mark.unit
class TestPollingChangeObserver:
    def test_first_poll_is_baseline_then_reports_changes(self, tmp_path):
        # Arrange
        storage = FileStorageBackend(directory=tmp_path)
        storage.set('bookingtms::activities', '[]')
        observer = PollingChangeObserver(storage=storage)
        seen: list[str] = []
        observer.subscribe(seen.append)

        # Act
        baseline = observer.poll_once()
        other_process = FileStorageBackend(directory=tmp_path)
        other_process.set('bookingtms::bookings', '[]')
        other_process.set('bookingtms::activities', '[{"id": "a"}]')
        changed = observer.poll_once()
        unchanged = observer.poll_once()

        # Assert
        assert baseline == []
        assert changed == ['bookingtms::activities', 'bookingtms::bookings']
        assert seen == changed
        assert unchanged == []

    def test_removed_key_is_reported(self):
        storage = InMemoryStorageBackend({'bookings': '[]'})
        observer = PollingChangeObserver(storage=storage)
        observer.poll_once()

        storage.remove('bookings')

        assert observer.poll_once() == ['bookings']


@pytest.mark.unit
class TestRedisChangeObserver:
    @pytest.fixture
    def observer(self):
        # client is only touched by run()
        return RedisChangeObserver(client=None, channel='test:changes', origin_id='process-a')

    def test_message_from_other_process_notifies(self, observer):
        seen: list[str] = []
        observer.subscribe(seen.append)

        observer.handle_message(orjson.dumps({'key': 'bookingtms::bookings', 'origin': 'process-b'}))

        assert seen == ['bookingtms::bookings']

    def test_own_message_is_ignored(self, observer):
        seen: list[str] = []
        observer.subscribe(seen.append)

        observer.handle_message('{"key": "bookingtms::bookings", "origin": "process-a"}')

        assert seen == []

    def test_malformed_message_is_ignored(self, observer):
        seen: list[str] = []
        observer.subscribe(seen.append)

        observer.handle_message('not json')
        observer.handle_message('{"origin": "process-b"}')

        assert seen == []
