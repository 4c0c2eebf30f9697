"""
Prime Liquidator Core: Order Idempotency Cache

Bounded, expiring map of order fingerprint -> venue order id. A hit means an
equivalent order was already submitted inside the trust window and must not
be sent again.

Entries expire after their TTL; when the cache is full the least recently
used entry is evicted. All operations take an internal lock so the cache
stays safe if submissions are ever parallelized.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    order_id: str
    expires_at: float


class OrderCache:
    """
    TTL + LRU idempotency cache.

    Args:
        ttl_seconds: Default time to live for new entries
        max_size: Maximum number of live entries
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(self, ttl_seconds: float, max_size: int,
                 clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.ttl_seconds = float(ttl_seconds)
        self.max_size = int(max_size)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[str]:
        """Return the cached order id or None. A hit refreshes the entry's LRU position, not its expiry."""
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[fingerprint]
                return None
            self._entries.move_to_end(fingerprint)
            return entry.order_id

    def contains(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is not None

    __contains__ = contains

    def set(self, fingerprint: str, order_id: str, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        with self._lock:
            now = self._clock()
            self._entries[fingerprint] = CacheEntry(order_id=order_id, expires_at=now + ttl)
            self._entries.move_to_end(fingerprint)
            if len(self._entries) > self.max_size:
                self._purge_expired_locked(now)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Order cache full ({self.max_size}); evicted {evicted}")

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
