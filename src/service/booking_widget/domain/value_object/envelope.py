"""
Envelope - unit of persistence for one entity kind.

Persisted document:
    {"version": 3, "updatedAt": "...", "updatedBy": "...", "organizationId": "...", "items": [...]}

`version` counts writes to this key only; documents recovered from legacy
keys start over at 1, so versions are not comparable across sources.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import attrs


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_instant(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return _EPOCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return _EPOCH


@attrs.define(frozen=True)
class Envelope:
    version: int
    updated_at: datetime
    organization_id: str
    items: Tuple[dict, ...] = ()
    updated_by: Optional[str] = None

    @classmethod
    def from_document(cls, document: Any) -> Optional['Envelope']:
        """None when document is not envelope-shaped"""
        if not isinstance(document, dict) or not isinstance(document.get('items'), list):
            return None
        try:
            version = int(document.get('version', 0))
        except (TypeError, ValueError):
            version = 0
        updated_by = document.get('updatedBy')
        return cls(
            version=version,
            updated_at=_parse_instant(document.get('updatedAt')),
            organization_id=str(document.get('organizationId') or ''),
            items=tuple(item for item in document['items'] if isinstance(item, dict)),
            updated_by=updated_by if isinstance(updated_by, str) else None,
        )

    def to_document(self) -> dict:
        document: dict[str, Any] = {
            'version': self.version,
            'updatedAt': self.updated_at.isoformat(),
            'organizationId': self.organization_id,
            'items': list(self.items),
        }
        if self.updated_by:
            document['updatedBy'] = self.updated_by
        return document

    def successor(
        self,
        *,
        items: Tuple[dict, ...],
        now: datetime,
        organization_id: str,
        updated_by: Optional[str] = None,
    ) -> 'Envelope':
        """Next envelope; updated_at is strictly later than ours even if the clock stalls"""
        floor = self.updated_at + timedelta(microseconds=1)
        return Envelope(
            version=self.version + 1,
            updated_at=now if now >= floor else floor,
            organization_id=organization_id,
            items=items,
            updated_by=updated_by,
        )

    @classmethod
    def first(
        cls,
        *,
        items: Tuple[dict, ...],
        now: datetime,
        organization_id: str,
        updated_by: Optional[str] = None,
    ) -> 'Envelope':
        return cls(
            version=1,
            updated_at=now,
            organization_id=organization_id,
            items=items,
            updated_by=updated_by,
        )
