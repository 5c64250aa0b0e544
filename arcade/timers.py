"""
Cancellable delayed execution on the running event loop
"""

import asyncio
import inspect
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()


class DelayedTask:
    """
    Run a callable after a delay, observable as an awaitable.

    The callable may be a plain function or a coroutine function. Awaiting the
    DelayedTask yields its return value; cancel() stops a pending run so an
    abandoned evaluation does not keep a timer alive.
    """

    def __init__(
        self,
        delay: float,
        func: Callable[..., Any],
        *args: Any,
        name: Optional[str] = None,
    ):
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.delay = delay
        self.name = name or getattr(func, "__name__", "delayed_task")
        self._func = func
        self._args = args
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(
            self._run(), name=self.name
        )

    async def _run(self) -> Any:
        await asyncio.sleep(self.delay)
        result = self._func(*self._args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def cancel(self) -> bool:
        """Cancel the pending run; returns False if it already finished"""
        if self._task.done():
            return False
        logger.debug("delayed_task_cancelled", task=self.name)
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def __await__(self):
        return self._task.__await__()


async def run_periodically(
    interval: float,
    func: Callable[[], Any],
    name: str = "periodic_task",
) -> None:
    """
    Call func every interval seconds until cancelled.

    Errors raised by func are logged and the schedule continues.
    """
    while True:
        tick = DelayedTask(interval, func, name=name)
        try:
            await tick
        except asyncio.CancelledError:
            tick.cancel()
            logger.info("periodic_task_stopped", task=name)
            raise
        except Exception as e:
            logger.error("periodic_task_error", task=name, error=str(e))
