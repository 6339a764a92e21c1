"""Periodic cache sweep.

Lazy eviction on read only catches keys that are read again; this service
evicts the rest on a fixed interval so memory does not grow unbounded.
"""
from typing import Optional, TYPE_CHECKING

from gasforms.core.logging import get_logger

if TYPE_CHECKING:
    from gasforms.core.cache import TTLCache
    from gasforms.services.scheduler import RepeatingTask, Scheduler

logger = get_logger(__name__)


class CacheCleanupService:
    """Runs ``TTLCache.cleanup()`` every ``interval`` seconds."""

    JOB_ID = "cache_cleanup"

    def __init__(self, cache: "TTLCache", scheduler: "Scheduler", interval: float = 300.0):
        self.cache = cache
        self.scheduler = scheduler
        self.interval = interval
        self._task: Optional["RepeatingTask"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.active

    def start(self) -> None:
        """Register the sweep job."""
        if self.running:
            return
        self._task = self.scheduler.every(self.interval, self.run_once, job_id=self.JOB_ID)
        logger.info("Cache cleanup started", interval=self.interval)

    def stop(self) -> None:
        """Cancel the sweep job."""
        if self._task:
            self._task.cancel()
            self._task = None
        logger.info("Cache cleanup stopped")

    def run_once(self) -> int:
        """Sweep once. Returns the number of evicted entries."""
        evicted = self.cache.cleanup()
        if evicted > 0:
            logger.info("Cache cleanup completed", evicted=evicted, size=self.cache.size())
        return evicted
