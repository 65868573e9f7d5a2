import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from server_name_picker.common import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """
    Key -> value store with a per-entry time-to-live.

    Expiry is measured from insertion and checked on every read, so an expired
    entry is never returned. The optional sweeper thread only frees memory
    early. Entries are replaced whole; concurrent writers to the same key
    resolve as last writer wins.
    """

    def __init__(
        self,
        default_ttl: float = config.CACHE_TTL,
        check_period: float = config.CACHE_CHECK_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        self._sweeper: threading.Thread | None = None
        self._stop_sweeper = threading.Event()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry

    def evict(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: float | None = None) -> Any:
        """
        Return the cached value, or call factory() and cache its result.

        The lock is not held while the factory runs: two callers missing the
        same key may both call upstream, and the later one wins.
        """
        value = self.get(key)
        if value is not None:
            logger.debug(f"Cache hit: {key}")
            return value

        logger.debug(f"Cache miss: {key}")
        value = factory()
        self.set(key, value, ttl)
        return value

    def sweep(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, daemon=True, name="CacheSweeper")
        self._sweeper.start()
        logger.debug(f"Cache sweeper started (every {self.check_period}s)")

    def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._stop_sweeper.set()
        self._sweeper.join(timeout=5)
        self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop_sweeper.wait(self.check_period):
            removed = self.sweep()
            if removed:
                logger.debug(f"Cache sweep removed {removed} expired entries")
