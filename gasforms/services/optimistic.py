"""Optimistic list mutations with rollback.

Every mutation applies its local effect before the first ``await`` so the
list changes in the same tick the action is invoked, then calls the server.
Each pending update is settled exactly once, by its own id: confirmed on
success, reverted on failure. Failures are re-raised after the rollback.
"""
import asyncio
import copy
import time
from dataclasses import dataclass
from typing import (
    Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar,
)

from gasforms.core.errors import RecordNotFoundError, get_user_friendly_message, parse_error
from gasforms.core.logging import get_logger
from gasforms.models.optimistic import (
    OptimisticUpdate,
    PendingCreate,
    PendingDelete,
    PendingUpdate,
    record_id,
    replace_by_id,
    with_id,
)
from gasforms.services.data_cache import CachedResource
from gasforms.services.notifications import LogNotifier, Notifier, Toast

logger = get_logger(__name__)

T = TypeVar("T")
ServerAction = Callable[[Any], Awaitable[Any]]


@dataclass
class BatchOperation:
    """One step of ``optimistic_batch``."""
    type: str  # 'create' | 'update' | 'delete'
    item: Any
    server_action: ServerAction


class OptimisticList(Generic[T]):
    """In-memory record list with optimistic create, update and delete.

    Outside an in-flight mutation ``data`` is the last confirmed server state
    plus the pending updates applied in submission order.
    """

    def __init__(
        self,
        initial: Optional[Sequence[T]] = None,
        notifier: Optional[Notifier] = None,
        show_success_toast: bool = True,
        show_error_toast: bool = True,
        rollback_on_error: bool = True,
        on_success: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        cache_view: Optional[CachedResource] = None,
    ):
        self.data: List[T] = list(initial or [])
        self.notifier = notifier or LogNotifier()
        self.show_success_toast = show_success_toast
        self.show_error_toast = show_error_toast
        self.rollback_on_error = rollback_on_error
        self.on_success = on_success
        self.on_error = on_error
        self.cache_view = cache_view

        self._pending: Dict[str, OptimisticUpdate] = {}
        self._counter = 0
        self._listeners: List[Callable[[List[T]], None]] = []

    @property
    def pending_updates(self) -> List[OptimisticUpdate]:
        return list(self._pending.values())

    @property
    def has_pending_updates(self) -> bool:
        return bool(self._pending)

    def find(self, item_id: Any) -> Optional[T]:
        return next((i for i in self.data if record_id(i) == item_id), None)

    def add_listener(self, listener: Callable[[List[T]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(list(self.data))
            except Exception as e:
                logger.error("Optimistic list listener failed", error=str(e))

    def reset_data(self, new_data: Sequence[T]) -> None:
        """Replace the list with server state and drop pending updates.

        Mutations still in flight settle as no-ops afterwards.
        """
        self.data = list(new_data)
        self._pending.clear()
        self._emit()

    # =========================================================================
    # BOOKKEEPING
    # =========================================================================

    def _next_update_id(self) -> str:
        self._counter += 1
        return f"update_{int(time.time() * 1000)}_{self._counter}"

    def _apply(self, update: OptimisticUpdate) -> None:
        self._pending[update.id] = update
        self.data = update.apply(self.data)
        self._emit()

    def _confirm(self, update_id: str, server_result: Any = None) -> bool:
        update = self._pending.pop(update_id, None)
        if update is None:
            return False
        if server_result is not None and not isinstance(update, PendingDelete):
            self.data = replace_by_id(self.data, record_id(update.data), server_result)
            self._emit()
        self._sync_cache()
        return True

    def _rollback(self, update_id: str) -> bool:
        update = self._pending.pop(update_id, None)
        if update is None:
            return False
        if self.rollback_on_error:
            self.data = update.revert(self.data)
            self._emit()
            logger.info("Optimistic update rolled back", update_id=update_id,
                        update_type=update.type)
        self._sync_cache()
        return True

    def _sync_cache(self) -> None:
        # Only confirmed state is shared with other cache consumers
        if self.cache_view is not None and not self._pending:
            self.cache_view.set_data(list(self.data))

    def _succeed(self, title: str, message: str) -> None:
        if self.show_success_toast:
            self.notifier.notify(Toast("success", title, message))
        if self.on_success:
            self.on_success()

    def _fail(self, update_ids: Sequence[str], error: Exception, title: str) -> None:
        for update_id in reversed(update_ids):
            self._rollback(update_id)

        app_error = parse_error(error)
        logger.warning("Optimistic mutation failed", title=title,
                       error_type=app_error.type.value, error=app_error.message)
        if self.show_error_toast:
            self.notifier.notify(Toast("error", title, get_user_friendly_message(app_error)))
        if self.on_error:
            self.on_error(error)

    def _build(self, op_type: str, item: Any, update_id: str) -> OptimisticUpdate:
        if op_type == "create":
            if record_id(item) is None:
                item = with_id(item, f"temp_{update_id}")
            return PendingCreate(update_id, item)

        original = self.find(record_id(item))
        if original is None:
            raise RecordNotFoundError(record_id(item))
        original = copy.deepcopy(original)
        if op_type == "update":
            return PendingUpdate(update_id, item, original_data=original)
        if op_type == "delete":
            return PendingDelete(update_id, original, original_data=original)
        raise ValueError(f"Unknown operation type: {op_type}")

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def optimistic_create(self, item: T, server_action: ServerAction) -> T:
        """Append ``item`` (with a temporary id if it has none) until the server answers.

        ``server_action`` receives the item as given and returns the stored
        entity, which replaces the temporary entry.
        """
        update = self._build("create", item, self._next_update_id())
        self._apply(update)

        try:
            result = await server_action(item)
        except asyncio.CancelledError:
            self._rollback(update.id)
            raise
        except Exception as e:
            self._fail([update.id], e, "Creation Failed")
            raise

        self._confirm(update.id, result)
        self._succeed("Created", "Item created successfully")
        return result

    async def optimistic_update(self, item: T, server_action: ServerAction) -> T:
        """Replace the record with the same id, restoring it on failure."""
        update = self._build("update", item, self._next_update_id())
        self._apply(update)

        try:
            result = await server_action(item)
        except asyncio.CancelledError:
            self._rollback(update.id)
            raise
        except Exception as e:
            self._fail([update.id], e, "Update Failed")
            raise

        self._confirm(update.id, result)
        self._succeed("Updated", "Item updated successfully")
        return result

    async def optimistic_delete(self, item_id: Any, server_action: ServerAction) -> None:
        """Remove the record, re-appending it on failure.

        Raises:
            RecordNotFoundError: no record with ``item_id`` (nothing is applied)
        """
        original = self.find(item_id)
        if original is None:
            raise RecordNotFoundError(item_id)
        update = self._build("delete", original, self._next_update_id())
        self._apply(update)

        try:
            await server_action(item_id)
        except asyncio.CancelledError:
            self._rollback(update.id)
            raise
        except Exception as e:
            self._fail([update.id], e, "Deletion Failed")
            raise

        self._confirm(update.id)
        self._succeed("Deleted", "Item deleted successfully")

    async def optimistic_batch(self, operations: Sequence[BatchOperation]) -> List[Any]:
        """Apply every operation, then run all server actions concurrently.

        All-or-nothing: if any action fails, every update of the batch is
        rolled back once all actions have finished, and the first error is
        re-raised.
        """
        updates = [self._build(op.type, op.item, self._next_update_id()) for op in operations]
        for update in updates:
            self._apply(update)
        update_ids = [u.id for u in updates]

        try:
            results = await asyncio.gather(
                *(op.server_action(op.item) for op in operations),
                return_exceptions=True,
            )
        except asyncio.CancelledError:
            for update_id in reversed(update_ids):
                self._rollback(update_id)
            raise

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            self._fail(update_ids, errors[0], "Batch Update Failed")
            raise errors[0]

        for update, result in zip(updates, results):
            self._confirm(update.id, result)
        self._succeed("Batch Update", f"{len(operations)} items updated successfully")
        return results
