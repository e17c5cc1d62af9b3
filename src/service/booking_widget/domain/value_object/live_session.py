from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Optional

import attrs


class SessionChangeType(StrEnum):
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


@attrs.define(frozen=True)
class LiveSession:
    """Authoritative backend session: an absolute start instant plus remaining capacity"""

    id: str
    start_time: datetime
    capacity_remaining: int
    capacity_total: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Optional['LiveSession']:
        """None when the payload lacks an id or a parseable start_time"""
        session_id = payload.get('id')
        raw_start = payload.get('start_time')
        if session_id is None or not isinstance(raw_start, str):
            return None
        try:
            start = datetime.fromisoformat(raw_start.replace('Z', '+00:00'))
        except ValueError:
            return None
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        try:
            remaining = int(payload.get('capacity_remaining') or 0)
            total = int(payload.get('capacity_total') or 0)
        except (TypeError, ValueError):
            return None
        return cls(
            id=str(session_id),
            start_time=start,
            capacity_remaining=remaining,
            capacity_total=total,
        )


@attrs.define(frozen=True)
class SessionChange:
    """One pushed change; `record` keeps the raw (possibly partial) row for UPDATE merges"""

    change_type: SessionChangeType
    session: Optional[LiveSession] = None
    session_id: Optional[str] = None
    record: Mapping[str, Any] = attrs.field(factory=dict, eq=False)

    @classmethod
    def from_event_data(cls, event_data: Mapping[str, Any]) -> Optional['SessionChange']:
        try:
            change_type = SessionChangeType(str(event_data.get('event_type', '')).upper())
        except ValueError:
            return None
        raw_record = event_data.get('record')
        record = dict(raw_record) if isinstance(raw_record, Mapping) else {}
        session = LiveSession.from_payload(record) if record else None
        session_id = record.get('id') or event_data.get('session_id')
        return cls(
            change_type=change_type,
            session=session,
            session_id=str(session_id) if session_id is not None else None,
            record=record,
        )
