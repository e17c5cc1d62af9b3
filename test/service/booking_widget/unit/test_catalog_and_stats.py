"""
Unit tests for the venue catalog refresh and booking statistics
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.platform.exception.exceptions import NetworkError, NotFoundError
from src.service.booking_widget.app.dto.catalog_dto import Venue
from src.service.booking_widget.app.query.get_booking_stats_use_case import GetBookingStatsUseCase
from src.service.booking_widget.app.query.load_activity_catalog_use_case import (
    LoadActivityCatalogUseCase,
)
from src.service.booking_widget.domain.enum import EntityKind
from test.constants import DEFAULT_VENUE_ID
from test.service.booking_widget.unit.helpers import activity_record, booking_record


UPTOWN_VENUE_ID = 'venue-uptown'


class TestLoadActivityCatalog:
    @pytest.fixture
    def catalog_gateway(self):
        gateway = AsyncMock()
        gateway.get_venue = AsyncMock(
            return_value=Venue(id=DEFAULT_VENUE_ID, name='Downtown', timezone='America/Chicago')
        )
        gateway.list_active_activities = AsyncMock(
            return_value=[
                {'id': 'a-1', 'name': 'The Vault'},
                {'id': 'a-2', 'name': 'Maze', 'timezone': 'UTC'},
            ]
        )
        return gateway

    @pytest.fixture
    def use_case(self, entity_store, catalog_gateway):
        return LoadActivityCatalogUseCase(entity_store=entity_store, catalog_gateway=catalog_gateway)

    @pytest.mark.asyncio
    async def test_fresh_catalog_replaces_venue_activities(self, use_case, entity_store):
        """
        Given: a cached activity of this venue and one of another venue
        When: the catalog is loaded
        Then:
          - this venue's cache is replaced by the backend list
          - venue timezone fills activities that have none
          - the other venue's activity is untouched
        """
        # Arrange
        entity_store.save(EntityKind.ACTIVITIES, activity_record(id='a-old'))
        entity_store.save(EntityKind.ACTIVITIES, activity_record(id='a-9', venueId=UPTOWN_VENUE_ID))

        # Act
        snapshot = await use_case.load_catalog(venue_id=DEFAULT_VENUE_ID)

        # Assert
        assert snapshot.from_cache is False
        assert snapshot.venue.name == 'Downtown'
        by_id = {activity.id: activity for activity in snapshot.activities}
        assert set(by_id) == {'a-1', 'a-2'}
        assert by_id['a-1'].timezone == 'America/Chicago'
        assert by_id['a-2'].timezone == 'UTC'
        assert by_id['a-1'].venue_id == DEFAULT_VENUE_ID
        stored_ids = {activity.id for activity in entity_store.get_all(EntityKind.ACTIVITIES)}
        assert stored_ids == {'a-9', 'a-1', 'a-2'}

    @pytest.mark.asyncio
    async def test_backend_outage_serves_cache(self, use_case, entity_store, catalog_gateway):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())
        entity_store.save(EntityKind.ACTIVITIES, activity_record(id='a-off', status='inactive'))
        catalog_gateway.get_venue.side_effect = NetworkError('Booking service unreachable')

        snapshot = await use_case.load_catalog(venue_id=DEFAULT_VENUE_ID)

        assert snapshot.from_cache is True
        assert snapshot.venue is None
        assert [activity.id for activity in snapshot.activities] == ['activity-escape-room']

    @pytest.mark.asyncio
    async def test_backend_outage_without_cache(self, use_case, catalog_gateway):
        catalog_gateway.list_active_activities.side_effect = NetworkError('Booking service unreachable')

        with pytest.raises(NetworkError):
            await use_case.load_catalog(venue_id=DEFAULT_VENUE_ID)

    @pytest.mark.asyncio
    async def test_unknown_venue(self, use_case, entity_store, catalog_gateway):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())
        catalog_gateway.get_venue.side_effect = NotFoundError('Venue missing not found')

        with pytest.raises(NotFoundError):
            await use_case.load_catalog(venue_id='missing')


class TestBookingStats:
    @pytest.fixture
    def use_case(self, entity_store):
        return GetBookingStatsUseCase(entity_store=entity_store)

    def test_revenue_counts_confirmed_only(self, use_case, entity_store):
        # Arrange
        for booking_id, status, total in [
            ('b-1', 'confirmed', 100),
            ('b-2', 'confirmed', 50),
            ('b-3', 'pending', 30),
            ('b-4', 'cancelled', 20),
            ('b-5', 'failed', 10),
        ]:
            entity_store.save(
                EntityKind.BOOKINGS,
                booking_record(booking_id=booking_id, participants=1, status=status, totalPrice=total),
            )

        # Act
        stats = use_case.get_stats()

        # Assert
        assert stats.total_bookings == 5
        assert stats.confirmed_bookings == 2
        assert stats.pending_bookings == 1
        assert stats.cancelled_bookings == 1
        assert stats.total_revenue == Decimal('150.00')
        assert stats.average_order_value == Decimal('75.00')

    def test_no_bookings(self, use_case):
        stats = use_case.get_stats()

        assert stats.total_bookings == 0
        assert stats.average_order_value == Decimal('0.00')

    def test_export_all_data(self, use_case, entity_store):
        entity_store.save(EntityKind.ACTIVITIES, activity_record())
        entity_store.save(EntityKind.BOOKINGS, booking_record(booking_id='b-1', participants=2))

        exported = use_case.export_all_data()

        assert set(exported) == {'exportedAt', 'activities', 'bookings', 'gift-vouchers'}
        assert exported['bookings'][0]['id'] == 'b-1'
        assert exported['activities'][0]['name'] == 'The Vault'
        assert exported['gift-vouchers'] == []
