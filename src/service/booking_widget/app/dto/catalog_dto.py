"""Venue catalog DTOs."""

from typing import List, Optional

import attrs

from src.service.booking_widget.domain.entity.activity_entity import Activity


@attrs.define(frozen=True)
class Venue:
    id: str
    name: str
    organization_id: Optional[str] = None
    timezone: Optional[str] = None


@attrs.define(frozen=True)
class CatalogSnapshot:
    """
    Activities of one venue as the widget sees them.

    from_cache is True when the remote lookup failed and the snapshot was
    served from the local store (venue is then None).
    """

    venue_id: str
    activities: List[Activity]
    venue: Optional[Venue] = None
    from_cache: bool = False
