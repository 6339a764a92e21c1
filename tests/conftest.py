"""Shared fixtures: manual clock, virtual scheduler, in-memory stores."""
from collections import Counter, defaultdict
from typing import Dict, List

import pytest

from gasforms.core.cache import TTLCache
from gasforms.core.errors import RetryPolicy
from gasforms.services.drafts import DraftStore
from gasforms.services.notifications import ToastNotifier
from gasforms.services.remote_store import MemoryStore
from gasforms.services.scheduler import VirtualScheduler


class ManualClock:
    """Monotonic clock moved by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SpyStore(MemoryStore):
    """MemoryStore that counts calls and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.calls: Counter = Counter()
        self._failures: Dict[str, List[BaseException]] = defaultdict(list)

    def fail_next(self, operation: str, error: BaseException, times: int = 1) -> None:
        self._failures[operation].extend([error] * times)

    def _record(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    async def select_one(self, collection, filters, columns="*"):
        self._record("select_one")
        return await super().select_one(collection, filters, columns)

    async def upsert(self, collection, row, conflict_keys):
        self._record("upsert")
        return await super().upsert(collection, row, conflict_keys)

    async def delete_where(self, collection, filters):
        self._record("delete_where")
        return await super().delete_where(collection, filters)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(max_size=100, default_ttl=300.0, clock=clock)


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def store() -> SpyStore:
    return SpyStore()


@pytest.fixture
def no_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=1)


@pytest.fixture
def drafts(store, no_retry) -> DraftStore:
    return DraftStore(store, user_id="user-1", retry_policy=no_retry)


@pytest.fixture
def notifier() -> ToastNotifier:
    return ToastNotifier()
