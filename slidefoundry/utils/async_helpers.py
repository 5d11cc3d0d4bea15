"""
Async helper utilities for background work.

Background tasks are created through create_safe_task so failures are
logged instead of disappearing with the task object.
"""

import asyncio
from typing import Any, Callable, Coroutine, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_safe_task(
    coro: Coroutine[Any, Any, T],
    name: Optional[str] = None,
    on_error: Optional[Callable[[BaseException], None]] = None,
) -> "asyncio.Task[T]":
    """
    Create an asyncio task whose failure is logged.

    Args:
        coro: The coroutine to run
        name: Task name used in log events
        on_error: Optional callback receiving the task's exception

    Returns:
        The created task
    """
    task = asyncio.create_task(coro, name=name)

    def handle_result(t: asyncio.Task) -> None:
        if t.cancelled():
            logger.debug("Background task cancelled", task_name=name or "unnamed")
            return
        exc = t.exception()
        if exc is None:
            return
        logger.error(
            "Background task failed",
            task_name=name or "unnamed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        if on_error:
            try:
                on_error(exc)
            except Exception as callback_error:
                logger.error(
                    "Error callback failed",
                    task_name=name,
                    callback_error=str(callback_error),
                )

    task.add_done_callback(handle_result)
    return task


async def run_periodically(
    func: Callable[[], Any],
    interval_seconds: float,
    task_name: Optional[str] = None,
) -> None:
    """
    Call func every interval_seconds until cancelled.

    A failing iteration is logged and the loop keeps running.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            result = func()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(
                "Periodic task iteration failed",
                task_name=task_name,
                error=str(e),
                error_type=type(e).__name__,
            )
