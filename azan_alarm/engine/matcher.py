"""
Trigger matching: decides whether "now" matches a prayer time or a user alarm.

Comparison is done at minute granularity ("HH:MM") so tick jitter inside a minute
does not matter; TriggerGuard keeps a trigger from firing again on later ticks of
the same minute. Built-in prayer notifications take priority over custom alarms,
and the first matching alarm wins.
"""
from collections import namedtuple
from datetime import datetime
from typing import Iterable, Optional

from azan_alarm.plugins.prayer.prayer_base import PRAYERS, PrayerTimes, prayer_display_name

MINUTE_FORMAT = "%H:%M"


class TriggerSource:
    BUILTIN = "builtin"
    CUSTOM = "custom"


class TriggerEvent(namedtuple("TriggerEvent", ["source", "prayer", "alarm", "minute"])):
    __slots__ = ()

    @property
    def display_label(self) -> str:
        if self.alarm is not None:
            return self.alarm.display_label()
        return f"At {prayer_display_name(self.prayer)} time"

    @property
    def title(self) -> str:
        name = prayer_display_name(self.prayer)
        if self.source == TriggerSource.BUILTIN:
            return f"{name} prayer time"
        return f"{name} alarm"

    @property
    def sound_path(self) -> str:
        return self.alarm.sound_path if self.alarm is not None else ""

    @property
    def vibration_enabled(self) -> bool:
        """Alarm's own flag; built-in notifications always ask (the global setting still applies)."""
        return self.alarm.vibration_enabled if self.alarm is not None else True


class TriggerGuard:
    """Minute string ("HH:MM") of the last trigger. Only evaluate() writes it."""

    __slots__ = ("minute",)

    def __init__(self, minute: str = ""):
        self.minute = minute

    def __repr__(self) -> str:
        return f"TriggerGuard({self.minute!r})"


def minute_key(moment: datetime) -> str:
    return moment.strftime(MINUTE_FORMAT)


def recurrence_day(moment: datetime) -> int:
    """Weekday as used by alarm recurrence sets: 1 = Monday ... 7 = Sunday."""
    return moment.isoweekday()


def evaluate(
    now: datetime,
    prayer_times: Optional[PrayerTimes],
    alarms: Iterable,
    settings,
    guard: TriggerGuard,
) -> Optional[TriggerEvent]:
    """Return the trigger for now, or None. Updates guard only when something fires."""
    current = minute_key(now)
    if current == guard.minute:
        return None

    if settings is not None and settings.enable_notifications and prayer_times is not None:
        for prayer in PRAYERS:
            prayer_time = prayer_times.get_time(prayer)
            if prayer_time is not None and minute_key(prayer_time) == current:
                guard.minute = current
                return TriggerEvent(TriggerSource.BUILTIN, prayer, None, current)

    weekday = recurrence_day(now)
    for alarm in alarms or ():
        if not alarm.is_active:
            continue
        if not alarm.should_trigger_on_day(weekday):
            continue
        if prayer_times is None:
            continue
        alarm_time = alarm.actual_alarm_time(prayer_times.get_time(alarm.prayer))
        if alarm_time is None:
            continue
        if minute_key(alarm_time) == current:
            guard.minute = current
            return TriggerEvent(TriggerSource.CUSTOM, alarm.prayer, alarm, current)

    return None
