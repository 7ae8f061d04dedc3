"""
Process-local read cache for per-identity file listings.

Entries expire after a fixed TTL and are deleted explicitly whenever a
mutation touches the identity. The cache is never a correctness
dependency: every reader falls back to the database on a miss.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from common.constants import LISTING_CACHE_TTL_SECONDS, MIN_REFETCH_INTERVAL_SECONDS
from common.logging_config import get_logger
from vault.utils import normalize_identity

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """
    Snapshot of one identity's listing.

    Attributes:
        snapshot: Cached listing payload
        captured_at: Clock reading when the snapshot was stored
    """
    snapshot: Any
    captured_at: float


class ListingCache:
    """
    Thread-safe TTL cache keyed by normalized identity.
    """

    def __init__(
        self,
        ttl_seconds: float = LISTING_CACHE_TTL_SECONDS,
        min_refetch_seconds: float = MIN_REFETCH_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.min_refetch_seconds = min_refetch_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, identity: str) -> Optional[Any]:
        """
        Return the cached snapshot, or None on a miss or a stale entry.
        """
        key = normalize_identity(identity)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.captured_at >= self.ttl_seconds:
                del self._entries[key]
                logger.debug(f"Listing cache entry expired [wallet={key}]")
                return None
            return entry.snapshot

    def put(self, identity: str, snapshot: Any) -> None:
        key = normalize_identity(identity)
        with self._lock:
            self._entries[key] = CacheEntry(snapshot=snapshot, captured_at=self._clock())

    def invalidate(self, identity: str) -> bool:
        """
        Drop the entry for identity.

        Returns:
            True if an entry was removed
        """
        key = normalize_identity(identity)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Listing cache invalidated [wallet={key}]")
        return removed

    def allow_refresh(self, identity: str) -> bool:
        """
        Whether a client-requested refresh may bypass the cached entry.

        Refreshes are throttled to one per minimum refetch interval.
        """
        key = normalize_identity(identity)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return True
            return self._clock() - entry.captured_at >= self.min_refetch_seconds

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
