"""
Alarm triggering engine: a once-per-second tick feeds the matcher with the current
snapshot and turns every trigger into a tone plus a notification.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from azan_alarm.core.task_manager import spawn
from azan_alarm.core.ticker import Ticker, TickerState
from azan_alarm.engine.countdown import CountdownPublisher
from azan_alarm.engine.matcher import TriggerEvent, TriggerGuard, evaluate
from azan_alarm.engine.notifier import NotificationDispatcher
from azan_alarm.engine.state import EngineState
from azan_alarm.engine.tone import ToneEngine

TEST_ALERT_TITLE = "Test alarm"
TEST_ALERT_BODY = "This is how your prayer alarms will sound"


class AlarmEngine:
    """All methods run on the loop thread; other threads go through TaskManager.call_soon."""

    def __init__(
        self,
        state: EngineState,
        tone: ToneEngine,
        dispatcher: NotificationDispatcher,
        audio_enabled: bool = True,
        tick_interval: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.state = state
        self.tone = tone
        self.dispatcher = dispatcher
        self.audio_enabled = audio_enabled
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

        self.guard = TriggerGuard()
        self.last_event: Optional[TriggerEvent] = None
        self.ticker = Ticker("alarm", self.on_tick, interval=tick_interval)
        self.countdown = CountdownPublisher(
            lambda: self.state.next_prayer,
            self.request_prayer_refresh,
            interval=tick_interval,
            clock=clock,
        )

    @property
    def running(self) -> bool:
        return self.ticker.state == TickerState.RUNNING

    def start(self, loop=None) -> None:
        self.ticker.start(loop)
        self.countdown.start(loop)
        self.logger.info("Alarm engine started")

    def stop(self) -> None:
        """Stops ticking. A tone already playing keeps playing until stop_tone()."""
        self.ticker.stop()
        self.countdown.stop()
        self.logger.info("Alarm engine stopped")

    def on_tick(self, now: Optional[datetime] = None) -> Optional[TriggerEvent]:
        now = now or self.clock()
        snapshot = self.state.snapshot()
        event = evaluate(now, snapshot.prayer_times, snapshot.alarms, snapshot.settings, self.guard)
        if event is not None:
            self.deliver(event)
        return event

    def deliver(self, event: TriggerEvent) -> None:
        self.last_event = event
        vibrate = self.should_vibrate(event)
        self.logger.info(f"Trigger at {event.minute}: {event.title} - {event.display_label} (vibrate={vibrate})")
        self._alert(event.title, event.display_label, event.sound_path, vibrate)

    def should_vibrate(self, event: TriggerEvent) -> bool:
        return bool(self.state.settings.enable_vibration and event.vibration_enabled)

    def _alert(self, title: str, body: str, sound_path: str = "", vibrate: bool = False) -> None:
        # Tone and notification are independent; one failing must not stop the other
        if self.audio_enabled:
            try:
                self.tone.start(sound_path)
            except Exception as e:
                self.logger.error(f"Error starting alert tone: {e}")
        try:
            self.dispatcher.dispatch(title, body, vibrate=vibrate)
        except Exception as e:
            self.logger.error(f"Error dispatching notification: {e}")

    def test_alert(self) -> None:
        self._alert(TEST_ALERT_TITLE, TEST_ALERT_BODY)

    def stop_tone(self) -> None:
        self.tone.cancel()

    def request_prayer_refresh(self) -> None:
        spawn(self.state.refresh_prayer_data(), name="prayer-refresh")

    def request_refresh(self) -> None:
        spawn(self.state.refresh_all(), name="state-refresh")

    def status(self) -> Dict[str, Any]:
        next_prayer = self.state.next_prayer
        last = self.last_event
        return {
            "running": self.running,
            "tone": self.tone.state,
            "countdown": self.countdown.text,
            "last_trigger_minute": self.guard.minute or None,
            "last_trigger": None if last is None else {
                "source": last.source,
                "prayer": last.prayer,
                "alarm_id": last.alarm.id if last.alarm is not None else None,
                "title": last.title,
                "label": last.display_label,
                "vibrate": self.should_vibrate(last),
            },
            "next_prayer": None if next_prayer is None else {
                "prayer": next_prayer.prayer,
                "time": next_prayer.time.isoformat(),
            },
            "alarms": len(self.state.alarms),
            "notification_permission": self.dispatcher.capability.permission,
        }
