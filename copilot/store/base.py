"""Key/value store protocol and the default in-process implementation.

Rate-limit cooldowns and bot link codes live behind this interface so the
process-wide maps can be swapped for a durable store without touching the
callers.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal expiring key/value interface."""

    def get(self, key: str) -> Optional[Any]:
        """Return the value for *key*, or ``None`` if absent or expired."""
        ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store *value*; it expires after *ttl_seconds* when given."""
        ...

    def expire(self, key: str, ttl_seconds: float) -> bool:
        """Reset the expiry of an existing key.  ``False`` if absent."""
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    """Dict-backed store; contents are lost on restart.

    Args:
        clock: Returns the current time in seconds (``time.time`` by default).
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[Any, Optional[float]]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (value, expires_at)

    def expire(self, key: str, ttl_seconds: float) -> bool:
        if self.get(key) is None:
            return False
        value, _ = self._data[key]
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
