from typing import Any, Dict, List, Mapping

from src.platform.exception.exceptions import NetworkError
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.dto.catalog_dto import CatalogSnapshot, Venue
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.app.interface.i_venue_catalog_gateway import IVenueCatalogGateway
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.enum import EntityKind


def _with_venue_defaults(raw: Mapping[str, Any], venue: Venue) -> Dict[str, Any]:
    record = dict(raw)
    if not (record.get('venueId') or record.get('venue_id')):
        record['venueId'] = venue.id
    if venue.timezone and not record.get('timezone'):
        record['timezone'] = venue.timezone
    if venue.organization_id and not (record.get('organizationId') or record.get('organization_id')):
        record['organizationId'] = venue.organization_id
    return record


class LoadActivityCatalogUseCase:
    """
    Refresh the local activity cache of one venue from the backend

    Flow:
    1. Fetch venue and its active activities
    2. replace_all(activities) keeping other venues' entries (emits activities-updated)
    3. On NetworkError serve the cached activities of the venue instead
    """

    def __init__(self, *, entity_store: IEntityStore, catalog_gateway: IVenueCatalogGateway) -> None:
        self.entity_store = entity_store
        self.catalog_gateway = catalog_gateway

    def _cached(self, venue_id: str) -> List[Activity]:
        return [
            activity
            for activity in self.entity_store.get_all(EntityKind.ACTIVITIES)
            if activity.venue_id == venue_id and activity.is_active
        ]

    @Logger.io
    async def load_catalog(self, *, venue_id: str) -> CatalogSnapshot:
        """
        Raises:
            NotFoundError: the backend does not know venue_id
            NetworkError: backend unreachable and nothing cached for venue_id
        """
        try:
            venue = await self.catalog_gateway.get_venue(venue_id=venue_id)
            records = await self.catalog_gateway.list_active_activities(venue_id=venue_id)
        except NetworkError as e:
            cached = self._cached(venue_id)
            if not cached:
                raise
            Logger.base.warning(
                f'📦 [CATALOG] Backend unavailable ({e.message}), serving {len(cached)} cached activities'
            )
            return CatalogSnapshot(venue_id=venue_id, activities=cached, from_cache=True)

        others = [
            activity
            for activity in self.entity_store.get_all(EntityKind.ACTIVITIES)
            if activity.venue_id != venue_id
        ]
        fresh = [_with_venue_defaults(record, venue) for record in records]
        stored = self.entity_store.replace_all(EntityKind.ACTIVITIES, [*others, *fresh])

        activities = [a for a in stored if a.venue_id == venue_id and a.is_active]
        Logger.base.info(f'📦 [CATALOG] Loaded {len(activities)} activities for venue {venue_id}')
        return CatalogSnapshot(venue_id=venue_id, activities=activities, venue=venue)
