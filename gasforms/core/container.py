"""Dependency injection container for the client core."""

from dependency_injector import containers, providers

from gasforms.core.cache import TTLCache
from gasforms.core.cleanup import CacheCleanupService
from gasforms.core.config import Settings
from gasforms.core.errors import RetryPolicy
from gasforms.services.async_operation import AsyncOperation
from gasforms.services.autosave import AutoSaveEngine
from gasforms.services.drafts import DraftStore
from gasforms.services.notifications import ToastNotifier
from gasforms.services.remote_store import PostgrestStore
from gasforms.services.scheduler import APSchedulerBackend


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Process-wide list cache
    cache = providers.Singleton(
        TTLCache,
        max_size=settings.provided.cache_max_size,
        default_ttl=settings.provided.cache_ttl,
    )

    scheduler = providers.Singleton(
        APSchedulerBackend,
    )

    notifier = providers.Singleton(
        ToastNotifier,
    )

    remote_store = providers.Singleton(
        PostgrestStore,
        settings=settings,
    )

    retry_policy = providers.Factory(
        RetryPolicy,
        max_attempts=settings.provided.remote_max_retries,
        initial_delay=settings.provided.remote_retry_delay,
        max_delay=settings.provided.remote_retry_max_delay,
    )

    cache_cleanup = providers.Singleton(
        CacheCleanupService,
        cache=cache,
        scheduler=scheduler,
        interval=settings.provided.cache_cleanup_interval,
    )

    # Per-user / per-form services: callers supply user_id, form_type, form_data
    draft_store = providers.Factory(
        DraftStore,
        store=remote_store,
        retry_policy=retry_policy,
    )

    autosave_engine = providers.Factory(
        AutoSaveEngine,
        scheduler=scheduler,
        interval=settings.provided.autosave_interval,
        notifier=notifier,
    )

    # Callers supply the operation coroutine function and callbacks
    async_operation = providers.Factory(
        AsyncOperation,
        notifier=notifier,
        retry_policy=retry_policy,
    )


# Global container instance
container = Container()
