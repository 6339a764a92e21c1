"""Startup and shutdown of the long-lived client services."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from gasforms.core.container import Container, container as default_container
from gasforms.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def startup(container: Container) -> None:
    """Configure logging, start the scheduler and the cache sweep."""
    configure_logging(container.settings())
    container.scheduler().start()
    container.cache_cleanup().start()
    logger.info("Client core started")


async def shutdown(container: Container) -> None:
    """Stop background jobs and close the remote store connection."""
    container.cache_cleanup().stop()
    await container.scheduler().shutdown()
    await container.remote_store().close()
    logger.info("Client core stopped")


@asynccontextmanager
async def lifespan(container: Optional[Container] = None) -> AsyncIterator[Container]:
    """Run the client core for the duration of the ``async with`` block."""
    container = container or default_container
    await startup(container)
    try:
        yield container
    finally:
        await shutdown(container)
