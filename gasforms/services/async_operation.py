"""Retry-wrapped runner for one user-triggered async operation.

``AsyncOperation`` exposes a ``data / loading / error`` view of the latest
run. Starting a new run cancels the previous one; results from a cancelled
or superseded run never reach the view.

Usage:
    submit = AsyncOperation(lambda invoice: store.insert("invoices", invoice),
                            notifier=notifier, success_message="Invoice sent")
    row = await submit.execute(invoice)   # None on failure or cancellation
"""
import asyncio
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from gasforms.core.errors import (
    AppError,
    RetryPolicy,
    get_user_friendly_message,
    log_error,
    parse_error,
    with_retry,
)
from gasforms.core.logging import get_logger
from gasforms.services.notifications import LogNotifier, Notifier, Toast

logger = get_logger(__name__)

T = TypeVar("T")


class AsyncOperation(Generic[T]):
    """Loading and error state around a retried coroutine function."""

    def __init__(
        self,
        operation: Callable[..., Awaitable[T]],
        notifier: Optional[Notifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        show_success_toast: bool = False,
        show_error_toast: bool = True,
        success_message: Optional[str] = None,
        on_success: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[AppError], None]] = None,
        context: str = "async_operation",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.operation = operation
        self.notifier = notifier or LogNotifier()
        self.retry_policy = retry_policy
        self.show_success_toast = show_success_toast
        self.show_error_toast = show_error_toast
        self.success_message = success_message
        self.on_success = on_success
        self.on_error = on_error
        self.context = context
        self._sleep = sleep

        self.data: Optional[T] = None
        self.loading = False
        self.error: Optional[AppError] = None

        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_success(self) -> bool:
        return not self.loading and self.error is None and self.data is not None

    def _cancel_inflight(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def execute(self, *args: Any, **kwargs: Any) -> Optional[T]:
        """Run the operation with retries, superseding any run in flight.

        Returns:
            The result, or None if the run failed, was cancelled or was
            superseded by a later ``execute``
        """
        self._cancel_inflight()
        generation = self._generation
        self.loading = True
        self.error = None

        task = asyncio.create_task(with_retry(
            lambda: self.operation(*args, **kwargs), self.retry_policy, self._sleep,
        ))
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            if generation == self._generation:
                self._cancel_inflight()
                self.loading = False
            raise

        if generation != self._generation or task.cancelled():
            logger.debug("Discarding superseded operation", context=self.context)
            return None
        self._task = None

        try:
            result = task.result()
        except Exception as e:
            self._fail(e)
            return None

        self.data = result
        self.error = None
        self.loading = False
        if self.show_success_toast and self.success_message:
            self.notifier.notify(Toast("success", "Success", self.success_message))
        if self.on_success:
            self.on_success(result)
        return result

    def _fail(self, error: Exception) -> None:
        app_error = parse_error(error)
        log_error(app_error, self.context)
        self.data = None
        self.error = app_error
        self.loading = False
        if self.show_error_toast:
            self.notifier.notify(Toast("error", "Error", get_user_friendly_message(app_error)))
        if self.on_error:
            self.on_error(app_error)

    def cancel(self) -> None:
        """Cancel the run in flight, keeping the last data and error."""
        if self._task is None:
            return
        self._cancel_inflight()
        self.loading = False
        logger.debug("Operation cancelled", context=self.context)

    def reset(self) -> None:
        """Cancel any run in flight and clear ``data`` and ``error``."""
        self._cancel_inflight()
        self.data = None
        self.loading = False
        self.error = None
