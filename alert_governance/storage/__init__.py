"""
Persistence for the governance engine.

Components:
    kv: KeyValueStore protocol, InMemoryStore, fail-soft JsonStateStore
    redis_store: Synchronous Redis-backed KeyValueStore
"""

from typing import Optional

from alert_governance.config.models import (
    RedisConnectionConfig,
    StorageBackend,
    StorageConfig,
)
from alert_governance.storage.kv import InMemoryStore, JsonStateStore, KeyValueStore
from alert_governance.storage.redis_store import (
    RedisKeyValueStore,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
)


def create_store(
    storage_config: Optional[StorageConfig] = None,
    redis_config: Optional[RedisConnectionConfig] = None,
) -> KeyValueStore:
    """
    Factory function to create the configured KeyValueStore.

    Args:
        storage_config: Storage settings (backend selection, TTL).
        redis_config: Redis connection settings, used for the redis backend.

    Returns:
        KeyValueStore: A connected store.

    Raises:
        StoreConnectionError: If the redis backend is selected and unreachable.
    """
    storage_config = storage_config or StorageConfig()
    if storage_config.backend == StorageBackend.REDIS:
        store = RedisKeyValueStore(
            redis_config or RedisConnectionConfig(),
            key_ttl_seconds=storage_config.key_ttl_seconds,
        )
        store.connect()
        return store
    return InMemoryStore()


__all__: list[str] = [
    "KeyValueStore",
    "InMemoryStore",
    "JsonStateStore",
    "RedisKeyValueStore",
    "StoreError",
    "StoreConnectionError",
    "StoreOperationError",
    "create_store",
]
