"""
Bounded, time-limited result cache.

Entries are kept in insertion order. Inserting past capacity evicts the
oldest entry; entries also expire on their own once older than
max_age_seconds. Expiry is checked lazily on read.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

from geoveil.shared.protocol import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 100
DEFAULT_MAX_AGE_SECONDS = 300.0


class QueryCache(Generic[T]):
    """Thread-safe FIFO cache keyed by query fingerprint."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            max_entries: Capacity before the oldest entry is evicted
            max_age_seconds: Age after which an entry is no longer served
            clock: Returns the current time in seconds
        """
        if max_entries <= 0:
            raise ValueError(f"max_entries must be > 0, got {max_entries}")
        self.max_entries = max_entries
        self.max_age_seconds = max_age_seconds
        self._clock = clock or time.time
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        """Cached value for key, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.inserted_at > self.max_age_seconds:
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)
                return None
            return entry.value

    def put(self, key: str, value: T) -> None:
        """
        Store a value.

        A new key inserted into a full cache evicts exactly one entry, the
        oldest. Re-storing an existing key moves it to the newest position.
        """
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full, evicted %s", evicted)
            self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
