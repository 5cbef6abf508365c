"""
Service layer: today's prayer times and the next prayer.
Backends are queried through PrayerTimeProvider; fetched days are saved to DB.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import select, delete

from azan_alarm.core.db import session_scope
from azan_alarm.plugins.prayer.models import PrayerTimesRecord
from azan_alarm.plugins.prayer.prayer_base import (
    PRAYERS,
    NextPrayer,
    PrayerBackend,
    PrayerTimes,
    get_backend,
)

logger = logging.getLogger(__name__)


def save_prayer_times(backend: str, prayer_date: date, prayer_times: PrayerTimes) -> None:
    """Replace the stored prayer times for backend and date."""
    fetched_at = datetime.now(timezone.utc).replace(tzinfo=None)
    with session_scope() as session:
        session.execute(
            delete(PrayerTimesRecord).where(
                PrayerTimesRecord.backend == backend,
                PrayerTimesRecord.prayer_date == prayer_date,
            )
        )
        session.add(
            PrayerTimesRecord(
                backend=backend,
                fetched_at=fetched_at,
                prayer_date=prayer_date,
                data=prayer_times.to_dict(),
            )
        )


def get_stored_prayer_times(backend: str, prayer_date: date) -> Optional[PrayerTimes]:
    """Return stored prayer times for backend and date, or None."""
    with session_scope() as session:
        row = (
            session.execute(
                select(PrayerTimesRecord)
                .where(
                    PrayerTimesRecord.backend == backend,
                    PrayerTimesRecord.prayer_date == prayer_date,
                )
                .order_by(PrayerTimesRecord.fetched_at.desc())
                .limit(1)
            )
            .scalars().first()
        )
        return PrayerTimes.from_dict(row.data) if row else None


class PrayerTimeProvider:
    """
    Today's prayer times and next prayer for the engine and the API.
    settings_getter returns the current Settings (calculation/juristic method); may be None.
    """

    def __init__(
        self,
        backend: PrayerBackend,
        settings_getter: Optional[Callable[[], Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.settings_getter = settings_getter
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: Dict[str, Any], settings_getter=None) -> "PrayerTimeProvider":
        return cls(get_backend(config), settings_getter=settings_getter)

    def _methods(self):
        if self.settings_getter is None:
            return None, None
        settings = self.settings_getter()
        return settings.calculation_method, settings.juristic_method

    def get_prayer_times(self, day: date, force_fetch: bool = False) -> PrayerTimes:
        """Fetch prayer times for day from the backend; falls back to stored times when the backend fails."""
        calculation_method, juristic_method = self._methods()
        try:
            prayer_times = self.backend.get_prayer_times(
                day,
                calculation_method=calculation_method,
                juristic_method=juristic_method,
                force_fetch=force_fetch,
            )
        except Exception as e:
            stored = get_stored_prayer_times(self.backend.name, day)
            if stored is None:
                raise
            self.logger.warning(f"Prayer backend failed for {day}, using stored times: {e}")
            return stored
        save_prayer_times(self.backend.name, day, prayer_times)
        return prayer_times

    def get_today_prayer_times(self, force_fetch: bool = False) -> PrayerTimes:
        return self.get_prayer_times(self.clock().date(), force_fetch=force_fetch)

    def get_next_prayer(self) -> Optional[NextPrayer]:
        """First of today's prayers after now; once Isha has passed, tomorrow's Fajr."""
        now = self.clock()
        today = self.get_prayer_times(now.date())
        for prayer in PRAYERS:
            prayer_time = today.get_time(prayer)
            if prayer_time is not None and prayer_time > now:
                return NextPrayer(prayer, prayer_time, int((prayer_time - now).total_seconds()))

        tomorrow = self.get_prayer_times(now.date() + timedelta(days=1))
        if tomorrow.fajr is None:
            return None
        return NextPrayer("fajr", tomorrow.fajr, int((tomorrow.fajr - now).total_seconds()))
