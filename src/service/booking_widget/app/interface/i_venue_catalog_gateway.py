"""
Venue Catalog Gateway Interface

Remote source of truth for venues and their active activities.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from src.service.booking_widget.app.dto.catalog_dto import Venue


class IVenueCatalogGateway(ABC):
    @abstractmethod
    async def get_venue(self, *, venue_id: str) -> Venue:
        """
        Raises:
            NotFoundError: unknown venue
            NetworkError: transport failure or non-success status
        """
        pass

    @abstractmethod
    async def list_active_activities(self, *, venue_id: str) -> List[Dict[str, Any]]:
        """
        Raw activity records (any of the accepted field spellings)

        Note:
            - Records are normalized by the entity store, not here
        """
        pass
