"""User-facing toast notifications.

Services never render anything; they hand ``Toast`` objects to a
``Notifier``. The UI layer subscribes to ``ToastNotifier``; headless use
falls back to ``LogNotifier``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from gasforms.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Toast:
    """Single toast message."""
    kind: str  # 'success' | 'error' | 'info' | 'warning'
    title: str
    message: str
    duration: Optional[float] = None  # seconds, None = UI default
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(Protocol):
    def notify(self, toast: Toast) -> None:
        ...


class LogNotifier:
    """Writes toasts to the structured log."""

    def notify(self, toast: Toast) -> None:
        log = logger.warning if toast.kind == "error" else logger.info
        log("Toast", kind=toast.kind, title=toast.title, message=toast.message)


class ToastNotifier:
    """Keeps toast history and fans out to subscribers."""

    def __init__(self, history_size: int = 50):
        self.history_size = history_size
        self.history: List[Toast] = []
        self._subscribers: List[Callable[[Toast], None]] = []

    def subscribe(self, callback: Callable[[Toast], None]) -> Callable[[], None]:
        """Register a subscriber. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, toast: Toast) -> None:
        self.history.append(toast)
        if len(self.history) > self.history_size:
            self.history = self.history[-self.history_size:]
        for callback in list(self._subscribers):
            try:
                callback(toast)
            except Exception as e:
                logger.error("Toast subscriber failed", error=str(e))

    def clear(self) -> None:
        self.history = []
