import pytest

from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.logging.loguru_io_utils import (
    MASK,
    mask_sensitive,
    should_mask_keyword,
    truncate_content,
)


@Logger.io
def find_booking(booking_id: str) -> str:
    if booking_id == 'missing':
        raise NotFoundError(f'Booking {booking_id} not found')
    return booking_id.upper()


@Logger.io(reraise=False)
def best_effort_sync(key: str) -> str:
    raise RuntimeError(f'storage offline for {key}')


@Logger.io
async def fetch_slots(*, activity_id: str) -> list[str]:
    return [f'{activity_id}:10:00 AM']


@pytest.mark.unit
class TestLoggerIO:
    def test_passes_return_value_through(self):
        assert find_booking('res-001') == 'RES-001'

    def test_reraises_and_marks_error_as_logged(self):
        with pytest.raises(NotFoundError) as exc_info:
            find_booking('missing')

        assert getattr(exc_info.value, '_has_logged', False) is True

    def test_reraise_disabled_returns_none(self):
        assert best_effort_sync('bookingtms_bookings') is None

    @pytest.mark.asyncio
    async def test_async_function(self):
        assert await fetch_slots(activity_id='vault') == ['vault:10:00 AM']

    def test_wraps_metadata(self):
        assert find_booking.__name__ == 'find_booking'


@pytest.mark.unit
class TestMasking:
    def test_sensitive_keyword_value(self):
        assert should_mask_keyword('api_key', 'secret') == MASK
        assert should_mask_keyword('code', 'SAVE10') == 'SAVE10'

    def test_sensitive_fragment_in_repr(self):
        masked = mask_sensitive("Settings(api_key='abc123', timeout=10)")

        assert 'abc123' not in masked
        assert MASK in masked

    def test_plain_value_untouched(self):
        value = {'code': 'SAVE10'}

        assert mask_sensitive(value) is value

    def test_truncate_long_content(self):
        assert truncate_content('x' * 10) == 'x' * 10
        assert truncate_content('x' * 600).endswith('...(+100 chars)')
