"""
Countdown to the next prayer, published once per second as HH:MM:SS.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from azan_alarm.core.ticker import Ticker
from azan_alarm.plugins.prayer.prayer_base import NextPrayer

NO_COUNTDOWN = "--:--:--"
ZERO_COUNTDOWN = "00:00:00"


def format_remaining(seconds: float) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class CountdownPublisher:
    """
    On reaching zero it publishes "00:00:00" once for that target and calls on_zero,
    which is expected to refresh the next prayer. It never works out the next target itself.
    """

    def __init__(
        self,
        next_prayer_getter: Callable[[], Optional[NextPrayer]],
        on_zero: Callable[[], None],
        interval: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.next_prayer_getter = next_prayer_getter
        self.on_zero = on_zero
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)
        self.ticker = Ticker("countdown", self.tick, interval=interval)
        self.listeners: List[Callable[[str], None]] = []
        self.text = NO_COUNTDOWN
        self._zero_target: Optional[datetime] = None

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self.listeners.append(listener)

    def start(self, loop=None) -> None:
        self.ticker.start(loop)

    def stop(self) -> None:
        self.ticker.stop()

    def tick(self) -> None:
        next_prayer = self.next_prayer_getter()
        if next_prayer is None:
            self._publish(NO_COUNTDOWN)
            return

        remaining = (next_prayer.time - self.clock()).total_seconds()
        if remaining > 0:
            self._publish(format_remaining(remaining))
            return

        if self._zero_target == next_prayer.time:
            return
        self._zero_target = next_prayer.time
        self._publish(ZERO_COUNTDOWN)
        self.logger.info(f"Countdown reached {next_prayer.prayer}, requesting refresh")
        self.on_zero()

    def _publish(self, text: str) -> None:
        self.text = text
        for listener in self.listeners:
            try:
                listener(text)
            except Exception as e:
                self.logger.error(f"Error in countdown listener: {e}")
