from typing import Optional

import attrs


@attrs.define(frozen=True)
class Slot:
    """
    Derived, ephemeral bookable time on a date.

    `session_id` is set only when the slot came from a live backend session.
    Build through `from_capacity` so `spots` and `available` stay consistent.
    """

    time: str
    spots: int = attrs.field(validator=attrs.validators.ge(0))
    available: bool
    session_id: Optional[str] = None

    @classmethod
    def from_capacity(
        cls, *, time: str, capacity: int, consumed: int = 0, session_id: Optional[str] = None
    ) -> 'Slot':
        spots = max(0, capacity - consumed)
        return cls(time=time, spots=spots, available=spots > 0, session_id=session_id)

    @property
    def is_live(self) -> bool:
        return self.session_id is not None
