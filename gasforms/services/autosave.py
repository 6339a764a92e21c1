"""Periodic auto-save of live form state to the draft store.

State per form instance:
    IDLE -> SAVING -> SAVED
                   -> ERROR (retried on the next tick)

The engine never raises into form logic: save failures are classified,
logged and reported through flags and a toast, and the timer keeps running.
"""
import asyncio
import copy
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from gasforms.core.errors import AppError, parse_error
from gasforms.core.logging import get_logger
from gasforms.models.drafts import FormType
from gasforms.services.drafts import DraftStore
from gasforms.services.notifications import LogNotifier, Notifier, Toast
from gasforms.services.scheduler import RepeatingTask, Scheduler

logger = get_logger(__name__)


class AutoSaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


def _fingerprint(form_data: Dict[str, Any]) -> str:
    return json.dumps(form_data, sort_keys=True, default=str)


class AutoSaveEngine:
    """Saves a form's draft every ``interval`` seconds while it has changes.

    Usage:
        engine = AutoSaveEngine(drafts, FormType.INVOICE, form.values, scheduler)
        engine.start()
        ...
        engine.update(form.values)   # on every edit
        ...
        await engine.close()         # flushes unsaved changes
    """

    def __init__(
        self,
        drafts: DraftStore,
        form_type: Union[FormType, str],
        form_data: Dict[str, Any],
        scheduler: Scheduler,
        interval: float = 30.0,
        enabled: bool = True,
        notifier: Optional[Notifier] = None,
        on_save: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[AppError], None]] = None,
    ):
        self.drafts = drafts
        self.form_type = FormType(form_type)
        self.scheduler = scheduler
        self.interval = interval
        self.enabled = enabled
        self.notifier = notifier or LogNotifier()
        self.on_save = on_save
        self.on_error = on_error

        self.is_auto_saving = False
        self.last_saved: Optional[datetime] = None
        self.last_error: Optional[AppError] = None
        self.status = AutoSaveStatus.IDLE

        # The initial snapshot is the baseline, not an unsaved change
        self._form_data = copy.deepcopy(form_data)
        self._fingerprint = _fingerprint(form_data)
        self._synced = self._fingerprint

        self._lock = asyncio.Lock()
        self._task: Optional[RepeatingTask] = None
        self._closed = False

    @property
    def has_unsaved_changes(self) -> bool:
        return self._fingerprint != self._synced

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.active

    def update(self, form_data: Dict[str, Any]) -> None:
        """Record the latest form snapshot."""
        self._form_data = copy.deepcopy(form_data)
        self._fingerprint = _fingerprint(form_data)

    def start(self) -> None:
        """Begin periodic saves. No-op when disabled or closed."""
        if self._closed or not self.enabled or self.running:
            return
        self._task = self.scheduler.every(
            self.interval, self._tick,
            job_id=f"autosave:{self.form_type.value}:{id(self):x}",
        )
        logger.debug("Auto-save started", form_type=self.form_type.value, interval=self.interval)

    def _stop_timer(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None

    def enable(self) -> None:
        self.enabled = True
        self.start()

    def disable(self) -> None:
        self.enabled = False
        self._stop_timer()

    def mark_saved(self) -> None:
        """Treat the current snapshot as persisted (after submit or discard)."""
        self._synced = self._fingerprint
        self.status = AutoSaveStatus.IDLE

    async def _tick(self) -> None:
        await self._save("timer")

    async def save_now(self) -> bool:
        """Save immediately, bypassing the timer.

        Returns:
            True if a draft was written
        """
        return await self._save("manual")

    async def close(self) -> None:
        """Stop the timer and flush unsaved changes once."""
        if self._closed:
            return
        self._closed = True
        self._stop_timer()
        if self.enabled and self.has_unsaved_changes:
            await self._save("teardown")
        logger.debug("Auto-save closed", form_type=self.form_type.value)

    async def _save(self, reason: str) -> bool:
        if not self.enabled:
            return False

        # Payload is fixed at call time; saves queue behind the lock in call order
        form_data, fingerprint = self._form_data, self._fingerprint

        async with self._lock:
            if fingerprint == self._synced:
                return False

            self.is_auto_saving = True
            self.status = AutoSaveStatus.SAVING
            try:
                saved = await self.drafts.save(self.form_type, form_data)
            except Exception as e:
                self._record_failure(parse_error(e), reason)
                return False
            finally:
                self.is_auto_saving = False

            self._synced = fingerprint
            self.last_error = None
            if not saved:
                self.status = AutoSaveStatus.IDLE
                return False

            self.last_saved = datetime.now(timezone.utc)
            self.status = AutoSaveStatus.SAVED
            logger.info("Auto-save completed", form_type=self.form_type.value, reason=reason)
            self.notifier.notify(Toast(
                "info", "Draft saved",
                "Your progress has been automatically saved", duration=2.0,
            ))
            if self.on_save:
                self.on_save()
            return True

    def _record_failure(self, app_error: AppError, reason: str) -> None:
        self.last_error = app_error
        self.status = AutoSaveStatus.ERROR
        logger.warning("Auto-save failed", form_type=self.form_type.value, reason=reason,
                       error_type=app_error.type.value, error=app_error.message)
        self.notifier.notify(Toast("error", "Auto-save failed", "Failed to save form draft"))
        if self.on_error:
            self.on_error(app_error)
