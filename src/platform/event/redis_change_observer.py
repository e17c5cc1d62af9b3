"""
Redis Pub/Sub Change Observer

Cross-process observer paired with KvrocksStorageBackend. Messages published
by this process (same origin id) are ignored, matching browser storage-event
semantics where a tab never hears its own writes.
"""

from typing import Callable

from anyio.abc import TaskGroup
import orjson
from redis.asyncio import Redis as AsyncRedis

from src.platform.event.change_notifier import ChangeNotifier
from src.platform.event.i_change_observer import ChangeCallback
from src.platform.logging.loguru_io import Logger


class RedisChangeObserver:
    def __init__(self, *, client: AsyncRedis, channel: str, origin_id: str) -> None:
        self._client = client
        self._channel = channel
        self._origin_id = origin_id
        self._notifier = ChangeNotifier(name='REDIS_OBSERVER')

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._notifier.subscribe(callback)

    def handle_message(self, raw: bytes | str) -> None:
        try:
            data = orjson.loads(raw)
            key = data['key']
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            Logger.base.warning(f'⚠️ [REDIS_OBSERVER] Failed to parse message: {e}')
            return
        if data.get('origin') == self._origin_id:
            return
        self._notifier.notify(key)

    async def start(self, *, task_group: TaskGroup) -> None:
        task_group.start_soon(self.run)  # pyrefly: ignore[bad-argument-type]
        Logger.base.info(f'🔔 [REDIS_OBSERVER] Started for {self._channel}')

    async def run(self) -> None:
        """Listen until cancelled"""
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self._channel)
        Logger.base.info(f'📡 [REDIS_OBSERVER] Subscribed to {self._channel}')
        try:
            async for message in pubsub.listen():
                if message['type'] == 'message':
                    self.handle_message(message['data'])
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
            Logger.base.info(f'🔌 [REDIS_OBSERVER] Unsubscribed from {self._channel}')
