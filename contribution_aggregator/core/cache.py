from collections.abc import Callable
from threading import RLock
from time import monotonic
from typing import Generic
from typing import TypeVar


V = TypeVar("V")


class TTLCache(Generic[V]):
    """In-memory cache whose entries expire after a fixed number of seconds.

    Expired entries are evicted on every write, so the cache only ever holds
    entries written during the last `ttl_seconds`.
    """

    def __init__(
        self, ttl_seconds: float, clock: Callable[[], float] = monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, V]] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: V) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._entries[key] = (now + self.ttl_seconds, value)

    def _evict_expired(self, now: float) -> None:
        expired = [
            key
            for key, (expires_at, _) in self._entries.items()
            if now >= expires_at
        ]
        for key in expired:
            del self._entries[key]
