"""
Engine-owned snapshots of provider data. Providers are blocking (DB, HTTP) so they are
called off the loop; the snapshots themselves are only replaced on the loop thread.
"""
import asyncio
import logging
from collections import namedtuple
from typing import Optional, Tuple

from azan_alarm.plugins.prayer.prayer_base import NextPrayer, PrayerTimes
from azan_alarm.plugins.settings.models import DEFAULT_SETTINGS, Settings

Snapshot = namedtuple("Snapshot", ["prayer_times", "next_prayer", "alarms", "settings"])


class EngineState:
    def __init__(self, prayer_provider, alarm_service, settings_service):
        self.prayer_provider = prayer_provider
        self.alarm_service = alarm_service
        self.settings_service = settings_service
        self.logger = logging.getLogger(self.__class__.__name__)

        self.prayer_times: Optional[PrayerTimes] = None
        self.next_prayer: Optional[NextPrayer] = None
        self.alarms: Tuple = ()
        self.settings: Settings = DEFAULT_SETTINGS

    def snapshot(self) -> Snapshot:
        return Snapshot(self.prayer_times, self.next_prayer, self.alarms, self.settings)

    async def refresh_all(self) -> None:
        # Settings first: the calculation method feeds the prayer backend
        await self.refresh_settings()
        await asyncio.gather(self.refresh_prayer_data(), self.refresh_alarms())

    async def refresh_prayer_data(self) -> None:
        """Today's times and the next prayer. Each keeps its previous value when loading fails."""
        try:
            self.prayer_times = await asyncio.to_thread(self.prayer_provider.get_today_prayer_times)
        except Exception as e:
            self.logger.error(f"Error loading today's prayer times: {e}")
        try:
            self.next_prayer = await asyncio.to_thread(self.prayer_provider.get_next_prayer)
            if self.next_prayer is not None:
                self.logger.info(f"Next prayer: {self.next_prayer.prayer} at {self.next_prayer.time:%H:%M}")
        except Exception as e:
            self.logger.error(f"Error loading next prayer: {e}")

    async def refresh_alarms(self) -> None:
        try:
            self.alarms = tuple(await asyncio.to_thread(self.alarm_service.get_alarms))
            self.logger.debug(f"Loaded {len(self.alarms)} alarms")
        except Exception as e:
            self.logger.error(f"Error loading alarms: {e}")

    async def refresh_settings(self) -> None:
        try:
            self.settings = await asyncio.to_thread(self.settings_service.get_settings)
        except Exception as e:
            self.logger.error(f"Error loading settings: {e}")
