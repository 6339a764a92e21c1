"""Client-side reconciliation services.

- Draft persistence, auto-save and restoration
- Stale-while-revalidate cached resources
- Optimistic list mutations with rollback
- Retried operations with loading and error state
"""

from .async_operation import AsyncOperation
from .autosave import AutoSaveEngine, AutoSaveStatus
from .data_cache import CachedList, CachedResource, CacheSnapshot, use_cache
from .drafts import DraftStore, has_meaningful_data
from .notifications import LogNotifier, Notifier, Toast, ToastNotifier
from .optimistic import BatchOperation, OptimisticList
from .record_status import RecordStatus, classify_due_date
from .remote_store import MemoryStore, PostgrestStore, RemoteStore
from .restoration import DraftPrompt, DraftRestorationFlow, RestorationState
from .scheduler import APSchedulerBackend, RepeatingTask, Scheduler, VirtualScheduler

__all__ = [
    # Drafts
    "AutoSaveEngine",
    "AutoSaveStatus",
    "DraftStore",
    "has_meaningful_data",
    "DraftPrompt",
    "DraftRestorationFlow",
    "RestorationState",
    # Cache
    "CachedList",
    "CachedResource",
    "CacheSnapshot",
    "use_cache",
    # Optimistic updates
    "BatchOperation",
    "OptimisticList",
    # Remote store
    "MemoryStore",
    "PostgrestStore",
    "RemoteStore",
    # Scheduling
    "APSchedulerBackend",
    "RepeatingTask",
    "Scheduler",
    "VirtualScheduler",
    # Notifications
    "LogNotifier",
    "Notifier",
    "Toast",
    "ToastNotifier",
    # Record status
    "RecordStatus",
    "classify_due_date",
    # Operations
    "AsyncOperation",
]
