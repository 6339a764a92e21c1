"""Stale-while-revalidate read-through over ``TTLCache``.

A ``CachedResource`` gives a consumer a ``data / loading / error`` view of one
cache key backed by an async fetcher:

- fresh cache hit: served synchronously, no fetch
- stale entry (with stale_while_revalidate): served synchronously while a
  background fetch refreshes it
- nothing cached: ``loading`` until the fetch resolves

Only the most recently started fetch may change state. Superseded fetches are
cancelled and their results dropped (generation counter).
"""
import asyncio
from dataclasses import dataclass
from typing import (
    Any, Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar,
)

from gasforms.core.cache import TTLCache
from gasforms.core.errors import AppError, parse_error
from gasforms.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
Fetcher = Callable[[], Awaitable[T]]
Listener = Callable[["CacheSnapshot"], None]


@dataclass
class CacheSnapshot:
    """Point-in-time view handed to listeners."""
    key: str
    data: Any
    loading: bool
    validating: bool
    error: Optional[AppError]
    is_stale: bool


class CachedResource(Generic[T]):
    """Reactive view of one cache key.

    Usage:
        clients = CachedResource(cache, f"clients:{user_id}", load_clients)
        snapshot = clients.subscribe()       # synchronous
        clients.add_listener(render)
        ...
        await clients.close()
    """

    def __init__(self, cache: TTLCache, key: str, fetcher: Fetcher,
                 ttl: float = 300.0, stale_while_revalidate: bool = True):
        self.cache = cache
        self.key = key
        self.fetcher = fetcher
        self.ttl = ttl
        self.stale_while_revalidate = stale_while_revalidate

        self.data: Optional[T] = None
        self.loading = False
        self.validating = False
        self.error: Optional[AppError] = None

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._closed = False

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_stale(self) -> bool:
        return self.data is not None and not self.cache.is_fresh(self.key)

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            key=self.key,
            data=self.data,
            loading=self.loading,
            validating=self.validating,
            error=self.error,
            is_stale=self.is_stale,
        )

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` on every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self) -> None:
        if self._closed:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("Cache listener failed", cache_key=self.key, error=str(e))

    # =========================================================================
    # FETCHING
    # =========================================================================

    def subscribe(self) -> CacheSnapshot:
        """Serve from cache and start a background fetch when needed."""
        if self._closed:
            return self.snapshot()

        # Read the stale value first: get() evicts expired entries
        stale = self.cache.get_stale(self.key) if self.stale_while_revalidate else None
        cached = self.cache.get(self.key)
        if cached is not None:
            self.data = cached
            self.error = None
            self.loading = False
            self._emit()
            return self.snapshot()

        self._start_fetch(stale)
        return self.snapshot()

    def _cancel_inflight(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.validating = False

    def _start_fetch(self, stale: Optional[T] = None) -> asyncio.Task:
        self._cancel_inflight()
        generation = self._generation

        if stale is not None:
            self.data = stale
            self.error = None
            self.loading = False
        elif self.data is None:
            self.loading = True
        self.validating = True
        self._emit()

        self._task = asyncio.create_task(self._fetch(generation))
        return self._task

    async def _fetch(self, generation: int) -> Tuple[Optional[T], Optional[Exception]]:
        try:
            fresh = await self.fetcher()
        except Exception as e:
            if generation != self._generation:
                return self.data, None
            app_error = parse_error(e)
            logger.warning("Cache fetch failed", cache_key=self.key,
                           error_type=app_error.type.value, error=app_error.message)
            stale = self.cache.get_stale(self.key)
            if stale is not None:
                self.data = stale
            self.error = app_error
            self.loading = False
            self.validating = False
            self._emit()
            return self.data, e

        if generation != self._generation:
            logger.debug("Discarding superseded fetch", cache_key=self.key)
            return self.data, None

        self.cache.set(self.key, fresh, self.ttl)
        self.data = fresh
        self.error = None
        self.loading = False
        self.validating = False
        self._emit()
        return fresh, None

    async def _await_fetch(self, task: asyncio.Task) -> Optional[T]:
        await asyncio.wait({task})
        if task.cancelled():
            return self.data
        data, error = task.result()
        if error is not None and data is None:
            raise error
        return data

    async def wait(self) -> Optional[T]:
        """Wait for the in-flight fetch, if any, and return current data."""
        if self._task is None:
            return self.data
        return await self._await_fetch(self._task)

    async def revalidate(self) -> Optional[T]:
        """Re-run the fetcher regardless of cache freshness.

        Raises:
            The fetch error, only when no fallback data exists
        """
        if self._closed:
            return self.data
        return await self._await_fetch(self._start_fetch())

    # =========================================================================
    # WRITES
    # =========================================================================

    def set_data(self, new_data: T) -> None:
        """Write a known-good value through the cache without fetching."""
        self._cancel_inflight()
        self.cache.set(self.key, new_data, self.ttl)
        self.data = new_data
        self.error = None
        self.loading = False
        self._emit()

    async def mutate(self, new_data: Optional[T] = None) -> Optional[T]:
        """Store ``new_data`` directly, or revalidate when omitted."""
        if new_data is not None:
            self.set_data(new_data)
            return new_data
        return await self.revalidate()

    def invalidate(self) -> None:
        """Drop the cache entry and local state; the next subscribe fetches."""
        self._cancel_inflight()
        self.cache.delete(self.key)
        self.data = None
        self.error = None
        self.loading = False
        self._emit()

    def set_key(self, key: str, fetcher: Optional[Fetcher] = None) -> CacheSnapshot:
        """Re-subscribe under a new key, superseding any in-flight fetch."""
        self._cancel_inflight()
        self.key = key
        if fetcher is not None:
            self.fetcher = fetcher
        self.data = None
        self.error = None
        self.loading = False
        return self.subscribe()

    async def close(self) -> None:
        """Cancel the in-flight fetch and stop notifying listeners."""
        task = self._task
        self._cancel_inflight()
        self._closed = True
        self._listeners.clear()
        if task is not None:
            await asyncio.wait({task})


class CachedList(CachedResource[List[T]]):
    """``CachedResource`` over a list, with index-based edit helpers."""

    @property
    def items(self) -> List[T]:
        return list(self.data or [])

    def add_item(self, item: T) -> None:
        if self.data is not None:
            self.set_data([*self.data, item])

    def update_item(self, index: int, item: T) -> None:
        if self.data is not None:
            items = list(self.data)
            items[index] = item
            self.set_data(items)

    def remove_item(self, index: int) -> None:
        if self.data is not None:
            self.set_data([x for i, x in enumerate(self.data) if i != index])

    def find_item(self, predicate: Callable[[T], bool]) -> Optional[T]:
        return next((x for x in self.data or [] if predicate(x)), None)


def use_cache(cache: TTLCache, key: str, fetcher: Fetcher, *,
              ttl: float = 300.0, stale_while_revalidate: bool = True) -> CachedResource:
    """Create a ``CachedResource`` and subscribe it immediately."""
    resource = CachedResource(cache, key, fetcher, ttl=ttl,
                              stale_while_revalidate=stale_while_revalidate)
    resource.subscribe()
    return resource
