"""In-process TTL cache for read-heavy list data.

Entries expire lazily on read and are swept periodically by
``CacheCleanupService``. When full, the oldest-inserted entry is evicted
(insertion order, not access order).
"""

import time
from typing import Any, Callable, Dict, List, Optional

from gasforms.core.logging import get_logger, log_cache_operation
from gasforms.models.cache import CacheEntry

logger = get_logger(__name__)


class TTLCache:
    """Key-value cache with per-entry expiry and a size cap.

    One instance is shared process-wide through the container; tests build
    their own with a controllable ``clock``.
    """

    def __init__(self, max_size: int = 100, default_ttl: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Insert or overwrite a value with optional TTL in seconds."""
        now = self._clock()
        ttl = ttl if ttl is not None else self.default_ttl

        if key not in self._entries and len(self._entries) >= self.max_size:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            log_cache_operation(logger, "evict", oldest_key, reason="max_size")

        self._entries[key] = CacheEntry(data=data, timestamp=now, expires_at=now + ttl)
        log_cache_operation(logger, "set", key, ttl=ttl)

    def get(self, key: str) -> Optional[Any]:
        """Get a fresh value, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            log_cache_operation(logger, "get", key, hit=False)
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            log_cache_operation(logger, "get", key, hit=False, expired=True)
            return None

        log_cache_operation(logger, "get", key, hit=True)
        return entry.data

    def get_stale(self, key: str) -> Optional[Any]:
        """Get a value regardless of expiry. Never evicts."""
        entry = self._entries.get(key)
        log_cache_operation(logger, "get_stale", key, hit=entry is not None)
        return entry.data if entry is not None else None

    def has(self, key: str) -> bool:
        """Check for a fresh entry, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def is_fresh(self, key: str) -> bool:
        """Like ``has`` but never evicts."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it was present."""
        deleted = self._entries.pop(key, None) is not None
        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
        logger.debug("Cache cleared")

    def size(self) -> int:
        return len(self._entries)

    def keys(self) -> List[str]:
        """Keys in insertion order, expired ones included."""
        return list(self._entries)

    def cleanup(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cache cleanup evicted entries", evicted=len(expired),
                         remaining=len(self._entries))
        return len(expired)
