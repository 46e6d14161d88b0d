"""
Key-value persistence port.

The engine persists throttle counters, snooze expiries, audit trails,
admission ledgers and baseline snapshots as JSON strings under keys it
names itself. Any store that offers synchronous get/set/delete on strings
can back it.

Classes:
    KeyValueStore: Protocol every backend implements
    InMemoryStore: Dict-backed store (default, and used in tests)
    JsonStateStore: Fail-soft JSON layer over a KeyValueStore
"""

import json
from typing import Any, Dict, Iterator, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStore(Protocol):
    """
    Minimal synchronous string key-value contract.

    Backends may raise on failure; the engine never calls a backend
    directly, only through JsonStateStore.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, overwriting any existing one."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...


class InMemoryStore:
    """
    Dict-backed KeyValueStore.

    Example:
        >>> store = InMemoryStore()
        >>> store.set("a", "1")
        >>> assert store.get("a") == "1"
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._data.keys()))

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonStateStore:
    """
    Fail-soft JSON serialization over a KeyValueStore.

    Reads return None and writes return False when the backend raises or
    the stored payload is not valid JSON. Each failure is logged at warning
    level and counted so callers can detect degraded persistence.

    Attributes:
        backend: The underlying KeyValueStore.
        failure_count: Number of read/write/delete failures observed.
    """

    def __init__(self, backend: KeyValueStore, component: str = "state") -> None:
        """
        Initialize the JSON state store.

        Args:
            backend: Store that actually holds the strings.
            component: Name included in log events to tell callers apart.
        """
        self.backend = backend
        self.component = component
        self.failure_count = 0

    def read(self, key: str) -> Optional[Any]:
        """
        Read and decode a JSON value.

        Args:
            key: Fully-qualified storage key.

        Returns:
            Optional[Any]: Decoded value, or None if absent or unreadable.
        """
        try:
            raw = self.backend.get(key)
            if not raw:
                return None
            return json.loads(raw)
        except Exception as e:
            self.failure_count += 1
            logger.warning(
                "state_read_failed",
                component=self.component,
                key=key,
                error=str(e),
            )
            return None

    def write(self, key: str, value: Any) -> bool:
        """
        Encode and store a JSON value.

        Args:
            key: Fully-qualified storage key.
            value: JSON-serializable value.

        Returns:
            bool: True if the write reached the backend.
        """
        try:
            raw = json.dumps(value)
            self.backend.set(key, raw)
            return True
        except Exception as e:
            self.failure_count += 1
            logger.warning(
                "state_write_failed",
                component=self.component,
                key=key,
                error=str(e),
            )
            return False

    def delete(self, key: str) -> bool:
        """Remove a key. Returns False if the backend raised."""
        try:
            self.backend.delete(key)
            return True
        except Exception as e:
            self.failure_count += 1
            logger.warning(
                "state_delete_failed",
                component=self.component,
                key=key,
                error=str(e),
            )
            return False
