"""
Repeating-task scheduler used by auto-save and cache cleanup.

Two backends share one interface:
- APSchedulerBackend: APScheduler AsyncIOScheduler with interval triggers
- VirtualScheduler: deterministic virtual time for tests and simulations
"""
import asyncio
import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError

from gasforms.core.logging import get_logger

logger = get_logger(__name__)

JobCallback = Callable[[], Any]


class RepeatingTask(Protocol):
    """Handle for a registered repeating job."""

    job_id: str

    def cancel(self) -> None:
        """Stop the job. Safe to call more than once."""
        ...

    @property
    def active(self) -> bool:
        ...


class Scheduler(Protocol):
    """Anything that can run a callback on a fixed interval."""

    def every(self, interval: float, callback: JobCallback,
              job_id: Optional[str] = None) -> RepeatingTask:
        ...


def _new_job_id(prefix: str = "job") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# =============================================================================
# APSCHEDULER BACKEND
# =============================================================================

class _APSchedulerTask:
    def __init__(self, scheduler: AsyncIOScheduler, job_id: str):
        self._scheduler = scheduler
        self.job_id = job_id
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            self._scheduler.remove_job(self.job_id)
            logger.debug("[Scheduler] Removed job", job_id=self.job_id)
        except JobLookupError:
            logger.warning("[Scheduler] Job not found", job_id=self.job_id)


class APSchedulerBackend:
    """Interval jobs on an APScheduler ``AsyncIOScheduler``.

    ``start()`` must be called from inside a running event loop.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start the scheduler if not already running."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("[Scheduler] Started")

    async def shutdown(self) -> None:
        """Shutdown the scheduler without waiting for running jobs.

        The asyncio scheduler queues its stop on the event loop, so one loop
        turn is yielded before returning.
        """
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            await asyncio.sleep(0)
            logger.info("[Scheduler] Shutdown")

    def every(self, interval: float, callback: JobCallback,
              job_id: Optional[str] = None) -> RepeatingTask:
        """
        Register a repeating job.

        Args:
            interval: Seconds between runs; the first run is one interval away
            callback: Sync or async callable with no arguments
            job_id: Unique identifier; an existing job with this id is replaced

        Returns:
            Handle whose ``cancel()`` removes the job
        """
        job_id = job_id or _new_job_id()
        self._scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=interval),
            id=job_id,
            replace_existing=True,
            coalesce=True,
        )
        logger.info("[Scheduler] Registered interval job", job_id=job_id, interval=interval)
        return _APSchedulerTask(self._scheduler, job_id)

    def get_job_info(self, job_id: str) -> Optional[Dict]:
        """Get information about a scheduled job."""
        job = self._scheduler.get_job(job_id)
        if job:
            return {
                "id": job.id,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }
        return None


# =============================================================================
# VIRTUAL TIME BACKEND
# =============================================================================

@dataclass
class _VirtualJob:
    job_id: str
    interval: float
    callback: JobCallback
    next_run: float
    active: bool = True

    def cancel(self) -> None:
        self.active = False


class VirtualScheduler:
    """Scheduler driven by ``advance()`` instead of the wall clock.

    ``now()`` doubles as a clock for ``TTLCache`` so expiry and timers share
    one timeline.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._jobs: Dict[str, _VirtualJob] = {}

    def now(self) -> float:
        return self._now

    def every(self, interval: float, callback: JobCallback,
              job_id: Optional[str] = None) -> RepeatingTask:
        if interval <= 0:
            raise ValueError("interval must be positive")
        job_id = job_id or _new_job_id()
        previous = self._jobs.get(job_id)
        if previous:
            previous.cancel()
        job = _VirtualJob(job_id, interval, callback, self._now + interval)
        self._jobs[job_id] = job
        return job

    @property
    def active_jobs(self) -> int:
        return sum(1 for job in self._jobs.values() if job.active)

    async def advance(self, seconds: float) -> int:
        """Move virtual time forward, running every job that falls due.

        Returns:
            Number of callbacks run
        """
        target = self._now + seconds
        runs = 0
        while True:
            due = [j for j in self._jobs.values() if j.active and j.next_run <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.next_run)
            self._now = job.next_run
            job.next_run += job.interval
            runs += 1
            try:
                result = job.callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Virtual job failed", job_id=job.job_id, error=str(e))
        self._now = target
        self._jobs = {k: j for k, j in self._jobs.items() if j.active}
        return runs
