import threading
import time
from typing import Any, Callable, NamedTuple, Optional


class CacheEntry(NamedTuple):
    value: Any
    populated_at: float


class ProductCache:
    """Single-value read cache with a freshness window.

    The value and its timestamp are swapped as one tuple, so a reader never
    sees a value paired with another value's timestamp. Expired entries are
    kept so callers can serve them as a stale fallback.

    Every ``clear()`` bumps ``generation``. A reader takes the generation
    before going to the store and hands it back to ``store()``; a result
    fetched across a clear is dropped instead of being cached as fresh.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def fresh(self) -> Optional[Any]:
        """Return the cached value if it is still inside the TTL window."""
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.populated_at < self.ttl:
            return entry.value
        return None

    def stale(self) -> Optional[Any]:
        """Return whatever is cached, expired or not."""
        entry = self._entry
        return entry.value if entry is not None else None

    def store(self, value: Any, generation: Optional[int] = None) -> bool:
        """Cache ``value``; returns False if a clear happened since ``generation`` was read."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entry = CacheEntry(value, self._clock())
            return True

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entry = None
