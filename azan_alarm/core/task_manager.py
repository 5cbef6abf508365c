"""
Single place for scheduling: the background asyncio loop every engine component runs on,
plus fire-and-forget helpers for continuations (permission requests, audio resume, refreshes).
"""
import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional, Set

logger = logging.getLogger(__name__)

# Strong references to fire-and-forget tasks; the loop only keeps weak ones.
_background_tasks: Set[asyncio.Task] = set()


def _on_task_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc!r}")


def spawn(coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
    """
    Run coro as a fire-and-forget task on the running loop. Must be called from the loop thread.
    Failures are logged, never raised to the caller.
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_task_done)
    return task


class TaskManager:
    def __init__(self):
        self.logger = logging.getLogger("TaskManager")
        self._setup_async_loop()

    def _setup_async_loop(self) -> None:
        """Setup async event loop in background thread."""
        self.async_loop = asyncio.new_event_loop()

        def run_async_loop():
            asyncio.set_event_loop(self.async_loop)
            self.async_loop.run_forever()

        self.async_thread = threading.Thread(target=run_async_loop, name="azan-alarm-loop", daemon=True)
        self.async_thread.start()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run callback on the loop thread (thread-safe)."""
        self.async_loop.call_soon_threadsafe(self._run_callback, callback, args)

    def _run_callback(self, callback: Callable[..., Any], args: tuple) -> None:
        try:
            callback(*args)
        except Exception as e:
            self.logger.error(f"Error running {getattr(callback, '__name__', callback)}: {e}", exc_info=True)

    def submit(self, coro: Awaitable[Any]) -> concurrent.futures.Future:
        """Schedule a coroutine on the loop from any thread; returns a concurrent future."""
        return asyncio.run_coroutine_threadsafe(coro, self.async_loop)

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and wait for its result (never call from the loop thread)."""
        return self.submit(coro).result(timeout=timeout)

    def stop(self) -> None:
        """Stop the loop and wait briefly for its thread."""
        if self.async_loop.is_running():
            self.async_loop.call_soon_threadsafe(self.async_loop.stop)
        self.async_thread.join(timeout=2)
