"""Structured logging for the client core.

Everything logs through structlog on top of stdlib logging, so host
applications can route records with ordinary handlers.
"""

import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import structlog

from gasforms.core.config import Settings


def _handlers(settings: Settings, level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        path = Path(settings.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _renderer(log_format: str) -> Any:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=False,
        pad_event=35,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(settings: Settings) -> None:
    """Configure stdlib handlers and the structlog processor chain."""
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=_handlers(settings, level),
        force=True,
    )

    timestamp_format = "iso" if settings.log_format == "json" else "%H:%M:%S"
    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt=timestamp_format),
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(settings.log_format),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_remote_call(logger: structlog.BoundLogger, collection: str,
                    operation: str, success: bool,
                    duration: Optional[float] = None, **kwargs) -> None:
    """Log one remote store request: collection, operation, outcome, timing."""
    if duration is not None:
        kwargs["duration_seconds"] = round(duration, 4)
    log = logger.info if success else logger.warning
    log("Remote call completed", collection=collection, operation=operation,
        success=success, **kwargs)


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log a cache read or write at debug level."""
    if hit is not None:
        kwargs["cache_hit"] = hit
    logger.debug("Cache operation", operation=operation, cache_key=key, **kwargs)
