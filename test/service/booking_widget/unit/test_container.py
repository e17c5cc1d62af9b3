"""Composition root smoke tests (memory and file backends, no network)"""

import anyio
from dependency_injector import providers
import orjson
import pytest

from src.platform.config import di
from src.platform.event.polling_change_observer import PollingChangeObserver
from src.platform.state.file_storage import FileStorageBackend
from src.platform.state.memory_storage import InMemoryStorageBackend
from src.service.booking_widget.app.booking_widget import BookingWidget
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.driven_adapter.repo.storage_keys import CANONICAL_KEYS
from test.service.booking_widget.unit.helpers import activity_record


@pytest.fixture
def container():
    yield di.container
    di.container.reset_singletons()


class TestContainer:
    def test_widgets_share_one_store_and_bus(self, container):
        first = container.booking_widget()
        second = container.booking_widget()

        assert isinstance(first, BookingWidget)
        assert first is not second
        assert first.entity_store is second.entity_store
        assert first.event_bus is second.event_bus
        assert first.live_feed_factory is not None
        assert isinstance(container.storage_backend(), InMemoryStorageBackend)

    def test_store_change_reaches_every_widget(self, container):
        """One widget's write is visible to another through the shared store"""
        store = container.entity_store()
        store.save(EntityKind.ACTIVITIES, activity_record())
        widget = container.booking_widget()

        state = widget.select_activity('activity-escape-room')

        assert state.activity_name == 'The Vault'

    @pytest.mark.asyncio
    async def test_setup_and_cleanup_with_memory_backend(self, container):
        client = container.remote_api_client()

        await di.setup()
        await di.cleanup()

        assert container.change_observer() is None
        assert client.http_client.is_closed

    @pytest.mark.asyncio
    async def test_external_file_write_reaches_event_bus(self, container, tmp_path):
        """
        Given: the file backend with its polling observer started by setup()
        When: another process writes the canonical activities key
        Then: activities-updated is emitted on this process's event bus
        """
        # Arrange
        container.storage_backend.override(
            providers.Singleton(FileStorageBackend, directory=tmp_path)
        )
        container.change_observer.override(
            providers.Singleton(PollingChangeObserver, storage=container.storage_backend, interval=0.05)
        )
        received: list[str] = []
        container.event_bus().subscribe(EntityKind.ACTIVITIES.event_name, received.append)

        try:
            await di.setup()

            # Act
            other_process = FileStorageBackend(directory=tmp_path)
            other_process.set(
                CANONICAL_KEYS[EntityKind.ACTIVITIES],
                orjson.dumps({'version': 1, 'items': [activity_record()]}).decode(),
            )
            with anyio.fail_after(2):
                while not received:
                    await anyio.sleep(0.01)
        finally:
            await di.cleanup()
            container.storage_backend.reset_override()
            container.change_observer.reset_override()

        # Assert
        assert received == ['activities-updated']
