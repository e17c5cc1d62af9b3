from typing import Optional

from redis import ConnectionPool, Redis
from redis.asyncio import ConnectionPool as AsyncConnectionPool, Redis as AsyncRedis

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger


def _kvrocks_url() -> str:
    return f'redis://{settings.KVROCKS_HOST}:{settings.KVROCKS_PORT}/{settings.KVROCKS_DB}'


class KvrocksClient:
    """
    Kvrocks clients with connection pools.

    The entity store writes synchronously, so storage goes through the sync
    client; the change observer listens on pub/sub through the async one.

    Usage:
        kvrocks_client.get_sync_client()        # KvrocksStorageBackend
        await kvrocks_client.initialize()       # RedisChangeObserver, at startup
        kvrocks_client.get_client()
    """

    def __init__(self) -> None:
        self._client: Optional[AsyncRedis] = None
        self._sync_client: Optional[Redis] = None

    def get_sync_client(self) -> Redis:
        """Lazily create the blocking client (no ping; first command fails fast)"""
        if self._sync_client is None:
            pool = ConnectionPool.from_url(
                _kvrocks_url(),
                password=settings.KVROCKS_PASSWORD or None,
                decode_responses=settings.REDIS_DECODE_RESPONSES,
                max_connections=settings.KVROCKS_POOL_MAX_CONNECTIONS,
                socket_timeout=settings.KVROCKS_POOL_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.KVROCKS_POOL_SOCKET_CONNECT_TIMEOUT,
            )
            self._sync_client = Redis(connection_pool=pool)
        return self._sync_client

    async def initialize(self) -> AsyncRedis:
        """Initialize async connection pool (idempotent)"""
        if self._client is not None:
            return self._client

        pool = AsyncConnectionPool.from_url(
            _kvrocks_url(),
            password=settings.KVROCKS_PASSWORD or None,
            decode_responses=settings.REDIS_DECODE_RESPONSES,
            max_connections=settings.KVROCKS_POOL_MAX_CONNECTIONS,
            socket_timeout=settings.KVROCKS_POOL_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.KVROCKS_POOL_SOCKET_CONNECT_TIMEOUT,
        )
        client = AsyncRedis.from_pool(pool)
        await client.ping()  # Fail-fast
        Logger.base.info('✅ Kvrocks connected')
        self._client = client
        return client

    def get_client(self) -> AsyncRedis:
        if self._client is None:
            raise RuntimeError(
                'Kvrocks client not initialized. '
                'Call await kvrocks_client.initialize() during startup.'
            )
        return self._client

    async def disconnect(self) -> None:
        """Close connection pools"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._sync_client is not None:
            self._sync_client.close()
            self._sync_client = None


# Global singleton
kvrocks_client = KvrocksClient()
