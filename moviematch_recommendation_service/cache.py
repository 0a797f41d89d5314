"""In-process cache-or-compute with a per-key TTL."""
import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Keyed cache where each entry carries its own time-to-live.

    Construct one explicitly and pass it to the collaborators that need it;
    there is no module-level instance. A per-key lock makes concurrent
    callers of ``get_or_compute`` for the same key wait for one computation
    instead of all computing.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10000):
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return default
            expires_at, value = item
            if expires_at <= self._clock():
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            if len(self._entries) >= self._max_entries and key not in self._entries:
                self._evict_expired()
                if len(self._entries) >= self._max_entries:
                    # Drop the entry closest to expiry
                    oldest = min(self._entries, key=lambda k: self._entries[k][0])
                    del self._entries[oldest]
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def get_or_compute(self, key: str, compute_fn: Callable[[], Any], ttl_seconds: float) -> Any:
        """
        Return the cached value or compute, store and return it.

        Exceptions from ``compute_fn`` propagate and nothing is stored.

        Args:
            key: Cache key
            compute_fn: Zero-argument callable producing the value
            ttl_seconds: Lifetime of a freshly computed value

        Returns:
            Cached or computed value
        """
        sentinel = object()
        value = self.get(key, sentinel)
        if value is not sentinel:
            return value

        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        try:
            with key_lock:
                value = self.get(key, sentinel)
                if value is not sentinel:
                    return value
                value = compute_fn()
                self.set(key, value, ttl_seconds)
                return value
        finally:
            with self._lock:
                self._key_locks.pop(key, None)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired()
            return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
