"""
Alarm storage (AlarmRecord) and the immutable Alarm snapshot the engine evaluates.
"""
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import Column, String, Boolean, DateTime, Integer, JSON

from azan_alarm.core.db import Base
from azan_alarm.plugins.prayer.prayer_base import prayer_display_name

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

# Offsets reach at most one day either side of the anchor prayer
MAX_OFFSET_MINUTES = 24 * 60


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_name(day: int) -> str:
    """Name of a recurrence day 1 (Monday) - 7 (Sunday); empty for anything else."""
    return DAY_NAMES.get(day, "")


class AlarmRecord(Base):
    """One user alarm. repeat_days is a JSON list of 1-7; empty means every day."""
    __tablename__ = "alarms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prayer = Column(String(16), nullable=False, index=True)
    offset_minutes = Column(Integer, nullable=False, default=0)
    label = Column(String(255), nullable=False, default="")
    sound_path = Column(String(1024), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    repeat_days = Column(JSON, nullable=False, default=list)
    vibration_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)


_ALARM_FIELDS = [
    "id",
    "prayer",
    "offset_minutes",
    "label",
    "repeat_days",
    "is_active",
    "vibration_enabled",
    "sound_path",
    "created_at",
    "updated_at",
]


class Alarm(namedtuple("Alarm", _ALARM_FIELDS, defaults=(0, "", (), True, True, "", None, None))):
    """Read-only alarm snapshot. Only id and prayer are required."""

    __slots__ = ()

    def display_label(self) -> str:
        """The label, or one derived from prayer and offset ("10 min before Fajr", "At Dhuhr time")."""
        if self.label:
            return self.label
        name = prayer_display_name(self.prayer)
        if self.offset_minutes == 0:
            return f"At {name} time"
        direction = "before" if self.offset_minutes < 0 else "after"
        return f"{abs(self.offset_minutes)} min {direction} {name}"

    def should_trigger_on_day(self, weekday: int) -> bool:
        """weekday is 1 (Monday) - 7 (Sunday). An empty recurrence set means every day."""
        if not self.repeat_days:
            return True
        return weekday in self.repeat_days

    def actual_alarm_time(self, prayer_time: Optional[datetime]) -> Optional[datetime]:
        if prayer_time is None:
            return None
        try:
            return prayer_time + timedelta(minutes=self.offset_minutes)
        except (OverflowError, TypeError):
            return None

    @classmethod
    def from_record(cls, record: AlarmRecord) -> "Alarm":
        return cls(
            id=record.id,
            prayer=record.prayer,
            offset_minutes=record.offset_minutes or 0,
            label=record.label or "",
            repeat_days=tuple(sorted(record.repeat_days or ())),
            is_active=bool(record.is_active),
            vibration_enabled=bool(record.vibration_enabled),
            sound_path=record.sound_path or "",
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
