"""
Periodic ticker on the asyncio loop: explicit stopped/running state, idempotent start.
"""
import asyncio
import logging
import time
from typing import Callable, Optional


class TickerState:
    """Ticker lifecycle."""
    STOPPED = "stopped"
    RUNNING = "running"


class Ticker:
    """
    Calls callback once per interval, aligned to wall-clock interval boundaries so
    ticks do not drift. start() while running is a no-op; stop() cancels the pending handle.
    Must be started and stopped from the loop thread.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], None],
        interval: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.callback = callback
        self.interval = interval
        self.clock = clock
        self.logger = logging.getLogger(f"{self.__class__.__name__}.{name}")
        self._handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def state(self) -> str:
        return TickerState.RUNNING if self._handle is not None else TickerState.STOPPED

    @property
    def handle(self) -> Optional[asyncio.TimerHandle]:
        return self._handle

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if self._handle is not None:
            return
        self._loop = loop or asyncio.get_running_loop()
        self._schedule_next()
        self.logger.debug(f"Ticker started (interval {self.interval}s)")

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        self.logger.debug("Ticker stopped")

    def _delay_to_next_boundary(self) -> float:
        delay = self.interval - (self.clock() % self.interval)
        # Landing exactly on a boundary would fire twice for the same second
        return delay if delay > 0.001 else self.interval

    def _schedule_next(self) -> None:
        self._handle = self._loop.call_later(self._delay_to_next_boundary(), self._fire)

    def _fire(self) -> None:
        if self._handle is None:
            return
        try:
            self.callback()
        except Exception as e:
            self.logger.error(f"Tick callback failed: {e}", exc_info=True)
        # Callback may have stopped the ticker
        if self._handle is not None:
            self._schedule_next()
