"""
Synchronous Redis backend for the key-value persistence port.

The policy engine is synchronous, so this store uses the blocking
redis-py client rather than redis.asyncio. Values are plain strings;
the engine owns key naming and namespacing.

Example:
    >>> from alert_governance.config.models import RedisConnectionConfig
    >>> store = RedisKeyValueStore(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> store.connect()
    >>> store.set("alerts:policy:s1:snooze", "{}")
"""

from __future__ import annotations

from typing import Optional

import structlog
from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from alert_governance.config.models import RedisConnectionConfig

logger = structlog.get_logger(__name__)


class StoreError(Exception):
    """Base exception for key-value store errors."""

    pass


class StoreConnectionError(StoreError):
    """Raised when the backend cannot be reached."""

    pass


class StoreOperationError(StoreError):
    """Raised when a get/set/delete fails."""

    pass


class RedisKeyValueStore:
    """
    KeyValueStore backed by Redis strings.

    Attributes:
        config: Redis connection configuration.
        key_ttl_seconds: Optional expiry applied on every set.
        _pool: Connection pool.
        _client: Redis client instance.
    """

    def __init__(
        self,
        config: RedisConnectionConfig,
        key_ttl_seconds: Optional[int] = None,
        client: Optional[Redis] = None,  # type: ignore[type-arg]
    ) -> None:
        """
        Initialize the store.

        Args:
            config: Redis connection configuration.
            key_ttl_seconds: Expiry for every written key. None keeps keys forever.
            client: Pre-built client (connection is then considered established).
        """
        self.config = config
        self.key_ttl_seconds = key_ttl_seconds
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client  # type: ignore[type-arg]

        logger.info(
            "redis_store_initialized",
            url=config.url,
            db=config.db,
            key_ttl_seconds=key_ttl_seconds,
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """
        Create the connection pool and verify it with PING.

        Raises:
            StoreConnectionError: If Redis is unreachable.
        """
        if self._client is not None:
            logger.warning("redis_store_already_connected")
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            client = Redis(connection_pool=self._pool)
            client.ping()
            self._client = client
            logger.info("redis_store_connected", url=self.config.url, db=self.config.db)

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            logger.error("redis_store_connection_failed", url=self.config.url, error=str(e))
            raise StoreConnectionError(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    def close(self) -> None:
        """Release the client and pool. Safe to call multiple times."""
        if self._client is not None:
            try:
                self._client.close()
            except RedisError as e:
                logger.warning("redis_store_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None

        logger.info("redis_store_closed")

    def _require_client(self) -> Redis:  # type: ignore[type-arg]
        if self._client is None:
            raise StoreConnectionError("Redis store is not connected")
        return self._client

    def get(self, key: str) -> Optional[str]:
        client = self._require_client()
        try:
            value = client.get(key)
        except RedisError as e:
            raise StoreOperationError(f"GET {key} failed: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        client = self._require_client()
        try:
            if self.key_ttl_seconds:
                client.set(key, value, ex=self.key_ttl_seconds)
            else:
                client.set(key, value)
        except RedisError as e:
            raise StoreOperationError(f"SET {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        client = self._require_client()
        try:
            client.delete(key)
        except RedisError as e:
            raise StoreOperationError(f"DEL {key} failed: {e}") from e
