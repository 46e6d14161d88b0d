from __future__ import annotations

from typing import Any, Optional

import pytest
from redis.exceptions import RedisError

from alert_governance.config.models import RedisConnectionConfig, StorageConfig
from alert_governance.storage import (
    InMemoryStore,
    JsonStateStore,
    RedisKeyValueStore,
    StoreConnectionError,
    StoreOperationError,
    create_store,
)


class FakeRedis:
    """Just enough of redis.Redis for the key-value store."""

    def __init__(self, fail: bool = False) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, Optional[int]] = {}
        self.fail = fail
        self.closed = False

    def get(self, key: str) -> Optional[bytes]:
        if self.fail:
            raise RedisError("boom")
        value = self.data.get(key)
        return value.encode("utf-8") if value is not None else None

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        if self.fail:
            raise RedisError("boom")
        self.data[key] = value
        self.expiry[key] = ex

    def delete(self, key: str) -> None:
        if self.fail:
            raise RedisError("boom")
        self.data.pop(key, None)

    def close(self) -> None:
        self.closed = True


class TestInMemoryStore:
    def test_get_set_delete(self) -> None:
        store = InMemoryStore()
        store.set("a", "1")

        assert store.get("a") == "1"
        assert "a" in store
        assert len(store) == 1

        store.delete("a")
        store.delete("missing")
        assert store.get("a") is None


class TestJsonStateStore:
    def test_round_trip(self) -> None:
        state = JsonStateStore(InMemoryStore())
        assert state.write("k", {"attempts": 2})
        assert state.read("k") == {"attempts": 2}
        assert state.read("absent") is None
        assert state.failure_count == 0

    def test_failures_are_counted_not_raised(self, failing_store) -> None:
        state = JsonStateStore(failing_store, component="test")

        assert state.read("k") is None
        assert state.write("k", [1]) is False
        assert state.delete("k") is False
        assert state.failure_count == 3

    def test_unserializable_value_is_a_failure(self) -> None:
        backend = InMemoryStore()
        state = JsonStateStore(backend)

        assert state.write("k", {"bad": object()}) is False
        assert state.failure_count == 1
        assert "k" not in backend

    def test_corrupt_payload_is_a_failure(self) -> None:
        backend = InMemoryStore()
        backend.set("k", "{not json")
        state = JsonStateStore(backend)

        assert state.read("k") is None
        assert state.failure_count == 1


class TestRedisKeyValueStore:
    def _store(self, client: Any, ttl: Optional[int] = None) -> RedisKeyValueStore:
        return RedisKeyValueStore(RedisConnectionConfig(), key_ttl_seconds=ttl, client=client)

    def test_string_operations(self) -> None:
        client = FakeRedis()
        store = self._store(client)

        store.set("k", "v")
        assert store.get("k") == "v"
        assert client.expiry["k"] is None

        store.delete("k")
        assert store.get("k") is None

    def test_ttl_applied_on_set(self) -> None:
        client = FakeRedis()
        self._store(client, ttl=60).set("k", "v")
        assert client.expiry["k"] == 60

    def test_backend_errors_are_wrapped(self) -> None:
        store = self._store(FakeRedis(fail=True))
        with pytest.raises(StoreOperationError):
            store.get("k")
        with pytest.raises(StoreOperationError):
            store.set("k", "v")

    def test_requires_connection(self) -> None:
        store = RedisKeyValueStore(RedisConnectionConfig())
        assert not store.is_connected
        with pytest.raises(StoreConnectionError):
            store.get("k")

    def test_close(self) -> None:
        client = FakeRedis()
        store = self._store(client)
        store.close()
        assert client.closed
        assert not store.is_connected

    def test_json_layer_absorbs_redis_failures(self) -> None:
        state = JsonStateStore(self._store(FakeRedis(fail=True)))
        assert state.read("k") is None
        assert state.failure_count == 1


def test_create_store_defaults_to_memory() -> None:
    assert isinstance(create_store(), InMemoryStore)
    assert isinstance(create_store(StorageConfig()), InMemoryStore)
