"""Base task class with common functionality."""

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, TypeVar

from celery import Task
from sqlalchemy.pool import NullPool

from crowdsync.core.celery_app import celery_app
from crowdsync.core.config import get_settings
from crowdsync.infrastructure.database import (
    SessionFactory,
    create_async_db_engine,
    create_session_factory,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableTask(Task):
    """Task with automatic retry on failure.

    Retries with exponential backoff on transient errors.
    """

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes
    retry_jitter = True
    max_retries = 3

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task failure."""
        logger.error(
            "Task %s failed after %d retries",
            self.name,
            self.request.retries,
            exc_info=exc,
            extra={"task_id": task_id, "task_name": self.name},
        )

    def on_retry(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task retry."""
        logger.warning(
            "Task %s retrying (attempt %d/%d)",
            self.name,
            self.request.retries + 1,
            self.max_retries,
            extra={"task_id": task_id, "task_name": self.name, "exception": str(exc)},
        )


def async_task(
    *args: Any,
    bind: bool = True,
    base: type[Task] = RetryableTask,
    **kwargs: Any,
) -> Callable:
    """Decorator for async Celery tasks.

    Runs the coroutine on a fresh event loop per invocation.

    @param bind - Bind task instance to first argument
    @param base - Base task class to use
    @returns Decorated task function
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @celery_app.task(*args, bind=bind, base=base, **kwargs)
        @functools.wraps(func)
        def wrapper(*task_args: Any, **task_kwargs: Any) -> T:
            return asyncio.run(func(*task_args, **task_kwargs))

        return wrapper

    return decorator


@asynccontextmanager
async def task_session_factory() -> AsyncIterator[SessionFactory]:
    """Session factory bound to an engine that lives for one task run.

    Pooled connections cannot outlive the per-task event loop, so the engine
    uses no pool and is disposed on exit.
    """
    engine = create_async_db_engine(get_settings(), poolclass=NullPool)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


def get_task_logger(task_name: str) -> logging.Logger:
    """Get logger for a specific task.

    @param task_name - Name of the task
    @returns Configured logger
    """
    return logging.getLogger(f"celery.task.{task_name}")
