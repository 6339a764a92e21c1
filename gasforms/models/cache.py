"""In-process cache entry model."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """Cached value with its insertion time and expiry (seconds, cache clock)."""

    data: Any
    timestamp: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """An entry expires exactly when its TTL has elapsed."""
        return now >= self.expires_at
