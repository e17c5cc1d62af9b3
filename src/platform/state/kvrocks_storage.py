"""
Kvrocks Storage Backend

Shares the entity cache between processes on different hosts. Every write is
followed by a PUBLISH on the sync channel so RedisChangeObserver instances in
other processes can re-emit the matching store event.
Message format: {"key": "<storage key>", "origin": "<writer id>"}
"""

from typing import List, Optional

import orjson
from redis import Redis
from redis.exceptions import RedisError

from src.platform.exception.exceptions import PersistenceError
from src.platform.logging.loguru_io import Logger


class KvrocksStorageBackend:
    def __init__(
        self,
        *,
        client: Redis,
        channel: str,
        origin_id: str,
        key_prefix: str = '',
    ) -> None:
        self._client = client
        self._channel = channel
        self.origin_id = origin_id
        self._key_prefix = key_prefix

    def _full_key(self, key: str) -> str:
        return f'{self._key_prefix}{key}'

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(self._full_key(key))
        except RedisError as e:
            Logger.base.warning(f'⚠️ [KVROCKS_STORAGE] Failed to read {key}: {e}')
            return None
        if isinstance(value, bytes):
            return value.decode('utf-8')
        return value  # type: ignore[return-value]

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._full_key(key), value)
        except RedisError as e:
            raise PersistenceError(f'Failed to write {key}: {e}') from e
        self._publish(key)

    def remove(self, key: str) -> None:
        try:
            removed = self._client.delete(self._full_key(key))
        except RedisError as e:
            raise PersistenceError(f'Failed to remove {key}: {e}') from e
        if removed:
            self._publish(key)

    def keys(self) -> List[str]:
        prefix_len = len(self._key_prefix)
        try:
            raw_keys = list(self._client.scan_iter(match=f'{self._key_prefix}*'))
        except RedisError as e:
            Logger.base.warning(f'⚠️ [KVROCKS_STORAGE] Failed to scan keys: {e}')
            return []
        return [
            (k.decode('utf-8') if isinstance(k, bytes) else k)[prefix_len:] for k in raw_keys
        ]

    def _publish(self, key: str) -> None:
        # The value is already stored; a lost notification only delays other tabs
        try:
            self._client.publish(
                self._channel, orjson.dumps({'key': key, 'origin': self.origin_id})
            )
            Logger.base.debug(f'📡 [KVROCKS_STORAGE] Published change of {key}')
        except RedisError as e:
            Logger.base.warning(f'⚠️ [KVROCKS_STORAGE] Publish failed for {key}: {e}')
