"""
In-memory TTL cache for upstream cost data.
Each entry is stored as key -> (value, expires_at). Expired entries stay
in place so get_stale() can serve them when a refresh fails.
Injected into the collector so tests can swap the clock.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Hashable


class TTLCache:
    """Thread-safe key -> value store with a single fixed time-to-live."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the fresh value for key, or default if missing/expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                return default
            return value

    def get_stale(self, key: Hashable, default: Any = None) -> Any:
        """Return the last stored value for key, ignoring expiry."""
        with self._lock:
            entry = self._entries.get(key)
            return entry[0] if entry is not None else default

    def set(self, key: Hashable, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
