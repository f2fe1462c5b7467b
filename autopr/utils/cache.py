"""Small in-process cache with a fixed time-to-live."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """A cached value and the monotonic time it was stored."""

    value: V
    timestamp: float


class TTLCache(Generic[V]):
    """Key/value cache whose entries expire ``ttl`` seconds after being stored.

    An entry is valid only while ``now - timestamp < ttl``. The clock is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry[V]] = {}

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
