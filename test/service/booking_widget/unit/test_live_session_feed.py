"""
Unit tests for the live session push channel

Covers the topic broadcaster the channel rides on and the feed that keeps
one (activity, date) session list fresh.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

from anyio import ClosedResourceError, create_task_group, fail_after, move_on_after, sleep
import pytest

from src.platform.event.in_memory_broadcaster import InMemoryBroadcasterImpl
from src.platform.exception.exceptions import NetworkError
from src.service.booking_widget.domain.value_object.live_session import (
    LiveSession,
    SessionChange,
    SessionChangeType,
)
from src.service.booking_widget.driven_adapter.live_session.in_memory_session_change_source import (
    InMemorySessionChangeSource,
    session_topic,
)
from src.service.booking_widget.driven_adapter.live_session.live_session_feed import (
    LiveSessionFeed,
    merge_session,
)
from test.constants import BOOKING_DATE, ESCAPE_ROOM_ID


UTC = ZoneInfo('UTC')
EVENING = LiveSession(
    id='s-1', start_time=datetime(2025, 11, 20, 18, 0, tzinfo=timezone.utc), capacity_remaining=4, capacity_total=8
)
LATE = LiveSession(
    id='s-2', start_time=datetime(2025, 11, 20, 19, 0, tzinfo=timezone.utc), capacity_remaining=8, capacity_total=8
)


class TestInMemoryBroadcaster:
    @pytest.fixture
    def broadcaster(self):
        return InMemoryBroadcasterImpl()

    @pytest.fixture
    def topic(self):
        return session_topic(ESCAPE_ROOM_ID)

    @pytest.mark.asyncio
    async def test_broadcast_to_multiple_subscribers(self, broadcaster, topic):
        stream1 = await broadcaster.subscribe(topic=topic)
        stream2 = await broadcaster.subscribe(topic=topic)

        await broadcaster.broadcast(topic=topic, event_data={'event_type': 'INSERT'})

        with fail_after(1.0):
            assert await stream1.receive() == {'event_type': 'INSERT'}
            assert await stream2.receive() == {'event_type': 'INSERT'}

    @pytest.mark.asyncio
    async def test_broadcast_to_other_topic(self, broadcaster, topic):
        stream = await broadcaster.subscribe(topic=topic)

        await broadcaster.broadcast(topic=session_topic('other'), event_data={'event_type': 'INSERT'})

        received = None
        with move_on_after(0.1):
            received = await stream.receive()
        assert received is None

    @pytest.mark.asyncio
    async def test_broadcast_with_no_subscribers(self, broadcaster, topic):
        await broadcaster.broadcast(topic=topic, event_data={'event_type': 'DELETE'})

    @pytest.mark.asyncio
    async def test_unsubscribe_closes_stream(self, broadcaster, topic):
        stream = await broadcaster.subscribe(topic=topic)

        await broadcaster.unsubscribe(topic=topic, stream=stream)
        await broadcaster.broadcast(topic=topic, event_data={'event_type': 'INSERT'})

        with pytest.raises(ClosedResourceError):
            await stream.receive()

    @pytest.mark.asyncio
    async def test_stream_full_drops_event(self, topic):
        broadcaster = InMemoryBroadcasterImpl(max_buffer_size=2)
        stream = await broadcaster.subscribe(topic=topic)

        for seq in range(3):
            await broadcaster.broadcast(topic=topic, event_data={'seq': seq})

        received = [stream.receive_nowait(), stream.receive_nowait()]
        assert received == [{'seq': 0}, {'seq': 1}]


class TestSessionChangeParsing:
    def test_from_event_data(self):
        change = SessionChange.from_event_data(
            {'event_type': 'update', 'record': {'id': 's-1', 'start_time': '2025-11-20T18:00:00Z'}}
        )

        assert change.change_type == SessionChangeType.UPDATE
        assert change.session_id == 's-1'

    def test_delete_without_record(self):
        change = SessionChange.from_event_data({'event_type': 'DELETE', 'session_id': 's-9'})

        assert change.session is None
        assert change.session_id == 's-9'

    def test_unknown_type(self):
        assert SessionChange.from_event_data({'event_type': 'TRUNCATE'}) is None

    def test_partial_update_keeps_id_and_raw_record(self):
        change = SessionChange.from_event_data(
            {'event_type': 'UPDATE', 'record': {'id': 's-1', 'capacity_remaining': 1}}
        )

        assert change.session is None
        assert change.session_id == 's-1'
        assert change.record == {'id': 's-1', 'capacity_remaining': 1}

    def test_merge_keeps_absent_fields(self):
        merged = merge_session(EVENING, {'id': 's-1', 'capacity_remaining': 1})

        assert merged.capacity_remaining == 1
        assert merged.capacity_total == 8
        assert merged.start_time == EVENING.start_time


class TestLiveSessionFeed:
    @pytest.fixture
    def gateway(self):
        gateway = AsyncMock()
        gateway.list_sessions = AsyncMock(return_value=[LATE, EVENING])
        return gateway

    @pytest.fixture
    def source(self):
        return InMemorySessionChangeSource(broadcaster=InMemoryBroadcasterImpl())

    @pytest.fixture
    def published(self):
        return []

    @pytest.fixture
    def feed(self, gateway, source, published):
        return LiveSessionFeed(
            activity_id=ESCAPE_ROOM_ID,
            date_iso=BOOKING_DATE,
            tz=UTC,
            gateway=gateway,
            change_source=source,
            on_change=published.append,
        )

    @pytest.mark.asyncio
    async def test_refresh_orders_by_start(self, feed):
        sessions = await feed.refresh()

        assert [s.id for s in sessions] == ['s-1', 's-2']
        assert [slot.time for slot in feed.slots] == ['6:00 PM', '7:00 PM']

    @pytest.mark.asyncio
    async def test_update_for_known_session_merges_without_refetch(self, feed, gateway, published):
        # Arrange
        await feed.refresh()

        # Act
        changed = await feed.apply_change(
            {'event_type': 'UPDATE', 'record': {'id': 's-1', 'capacity_remaining': 1}}
        )

        # Assert
        assert changed is True
        assert gateway.list_sessions.await_count == 1
        assert published[-1][0].spots == 1
        assert published[-1][0].session_id == 's-1'

    @pytest.mark.asyncio
    async def test_update_for_unknown_session_refetches(self, feed, gateway):
        await feed.refresh()

        await feed.apply_change({'event_type': 'UPDATE', 'record': {'id': 's-3', 'capacity_remaining': 2}})

        assert gateway.list_sessions.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize('event_type', ['INSERT', 'DELETE'])
    async def test_insert_and_delete_refetch(self, feed, gateway, event_type):
        await feed.refresh()
        gateway.list_sessions.return_value = [EVENING]

        await feed.apply_change({'event_type': event_type, 'session_id': 's-2'})

        assert [s.id for s in feed.sessions] == ['s-1']

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_last_list(self, feed, gateway, published):
        await feed.refresh()
        gateway.list_sessions.side_effect = NetworkError('Booking service unreachable')

        changed = await feed.apply_change({'event_type': 'INSERT', 'record': {'id': 's-3'}})

        assert changed is False
        assert published == []
        assert len(feed.sessions) == 2

    @pytest.mark.asyncio
    async def test_unknown_change_type_is_ignored(self, feed, gateway):
        assert await feed.apply_change({'event_type': 'TRUNCATE'}) is False
        gateway.list_sessions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_consumes_pushed_changes_until_stopped(self, feed, source, published):
        """
        Given: a running feed subscribed to the activity channel
        When: an UPDATE is published and the feed is stopped
        Then: the change reaches on_change and the subscription is released
        """
        await feed.refresh()

        with fail_after(2):
            async with create_task_group() as tg:
                await feed.start(task_group=tg)
                while feed._scope is None:
                    await sleep(0)

                await source.publish(
                    activity_id=ESCAPE_ROOM_ID,
                    change_type=SessionChangeType.UPDATE,
                    record={'id': 's-2', 'capacity_remaining': 0},
                )
                while not published:
                    await sleep(0)
                feed.stop()

        assert published[-1][1].spots == 0
        assert published[-1][1].available is False
        assert session_topic(ESCAPE_ROOM_ID) not in source.broadcaster._subscribers
