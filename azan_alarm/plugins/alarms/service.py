"""
Service layer: alarm CRUD on AlarmRecord rows. Returns Alarm snapshots, never ORM rows.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select, delete

from azan_alarm.core.db import session_scope
from azan_alarm.plugins.alarms.models import Alarm, AlarmRecord, DAY_NAMES, MAX_OFFSET_MINUTES
from azan_alarm.plugins.prayer.prayer_base import PRAYERS


class AlarmNotFoundError(LookupError):
    """No alarm with the given id."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def validate_alarm(alarm: Alarm) -> None:
    """Raise ValueError for an unknown anchor prayer, a weekday outside 1-7 or an offset beyond a day."""
    if alarm.prayer not in PRAYERS:
        raise ValueError(f"Unknown prayer: {alarm.prayer!r}")
    bad_days = [d for d in alarm.repeat_days or () if d not in DAY_NAMES]
    if bad_days:
        raise ValueError(f"Repeat days must be 1 (Monday) - 7 (Sunday), got {bad_days}")
    if not isinstance(alarm.offset_minutes, int) or isinstance(alarm.offset_minutes, bool):
        raise ValueError(f"offset_minutes must be an integer, got {alarm.offset_minutes!r}")
    if abs(alarm.offset_minutes) > MAX_OFFSET_MINUTES:
        raise ValueError(f"offset_minutes must be within {MAX_OFFSET_MINUTES} minutes of the prayer")


class AlarmService:
    """Alarm repository. Listeners are called with no arguments after every change."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.change_callbacks: List[Callable[[], None]] = []

    def register_change_callback(self, callback: Callable[[], None]) -> None:
        self.change_callbacks.append(callback)

    def _notify(self) -> None:
        for callback in self.change_callbacks:
            try:
                callback()
            except Exception as e:
                self.logger.error(f"Error in alarm change callback: {e}")

    def get_alarms(self) -> List[Alarm]:
        with session_scope() as session:
            rows = session.execute(select(AlarmRecord).order_by(AlarmRecord.id)).scalars().all()
            return [Alarm.from_record(r) for r in rows]

    def get_alarm(self, alarm_id: int) -> Alarm:
        with session_scope() as session:
            row = session.get(AlarmRecord, alarm_id)
            if row is None:
                raise AlarmNotFoundError(alarm_id)
            return Alarm.from_record(row)

    def get_active_alarms(self) -> List[Alarm]:
        return [a for a in self.get_alarms() if a.is_active]

    def create_alarm(self, alarm: Alarm) -> Alarm:
        """Store a new alarm; id and timestamps are assigned here."""
        validate_alarm(alarm)
        now = _utc_now()
        with session_scope() as session:
            row = AlarmRecord(
                prayer=alarm.prayer,
                offset_minutes=alarm.offset_minutes,
                label=alarm.label or "",
                sound_path=alarm.sound_path or "",
                is_active=alarm.is_active,
                repeat_days=_days(alarm.repeat_days),
                vibration_enabled=alarm.vibration_enabled,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            created = Alarm.from_record(row)
        self.logger.info(f"Created alarm {created.id}: {created.display_label()}")
        self._notify()
        return created

    def update_alarm(self, alarm: Alarm) -> Alarm:
        validate_alarm(alarm)
        with session_scope() as session:
            row = session.get(AlarmRecord, alarm.id)
            if row is None:
                raise AlarmNotFoundError(alarm.id)
            row.prayer = alarm.prayer
            row.offset_minutes = alarm.offset_minutes
            row.label = alarm.label or ""
            row.sound_path = alarm.sound_path or ""
            row.is_active = alarm.is_active
            row.repeat_days = _days(alarm.repeat_days)
            row.vibration_enabled = alarm.vibration_enabled
            row.updated_at = _utc_now()
            session.flush()
            updated = Alarm.from_record(row)
        self._notify()
        return updated

    def delete_alarm(self, alarm_id: int) -> None:
        with session_scope() as session:
            result = session.execute(delete(AlarmRecord).where(AlarmRecord.id == alarm_id))
            if result.rowcount == 0:
                raise AlarmNotFoundError(alarm_id)
        self.logger.info(f"Deleted alarm {alarm_id}")
        self._notify()

    def toggle_alarm(self, alarm_id: int, active: bool) -> Alarm:
        with session_scope() as session:
            row = session.get(AlarmRecord, alarm_id)
            if row is None:
                raise AlarmNotFoundError(alarm_id)
            row.is_active = bool(active)
            row.updated_at = _utc_now()
            session.flush()
            toggled = Alarm.from_record(row)
        self._notify()
        return toggled


def _days(days: Optional[Iterable[int]]) -> List[int]:
    return sorted(set(days or ()))
