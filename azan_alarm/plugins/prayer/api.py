"""
Per-plugin API for prayer times. Mounted at /api/components/prayer/.
"""
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from .prayer_base import prayer_display_name


class PrayerTimesResponse(BaseModel):
    fajr: Optional[datetime] = None
    dhuhr: Optional[datetime] = None
    asr: Optional[datetime] = None
    maghrib: Optional[datetime] = None
    isha: Optional[datetime] = None


class NextPrayerResponse(BaseModel):
    prayer: str
    name: str
    time: datetime
    remaining_seconds: int


class CountdownResponse(BaseModel):
    countdown: str
    next_prayer: Optional[str] = None


def get_router(alarm_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/prayer."""
    router = APIRouter(tags=["Prayer Times"])
    provider = alarm_app.prayer_provider

    @router.get("/today", response_model=PrayerTimesResponse)
    def get_today() -> PrayerTimesResponse:
        try:
            prayer_times = provider.get_today_prayer_times()
        except Exception as e:
            raise HTTPException(status_code=503, detail=f"Prayer times unavailable: {e}")
        return PrayerTimesResponse(**prayer_times._asdict())

    @router.get("/next", response_model=NextPrayerResponse)
    def get_next() -> NextPrayerResponse:
        try:
            next_prayer = provider.get_next_prayer()
        except Exception as e:
            raise HTTPException(status_code=503, detail=f"Prayer times unavailable: {e}")
        if next_prayer is None:
            raise HTTPException(status_code=404, detail="No upcoming prayer")
        return NextPrayerResponse(
            prayer=next_prayer.prayer,
            name=prayer_display_name(next_prayer.prayer),
            time=next_prayer.time,
            remaining_seconds=next_prayer.remaining_seconds,
        )

    @router.get("/countdown", response_model=CountdownResponse)
    def get_countdown() -> CountdownResponse:
        """Latest text published by the engine's countdown."""
        def read() -> Dict[str, Optional[str]]:
            next_prayer = alarm_app.engine.state.next_prayer
            return {
                "countdown": alarm_app.engine.countdown.text,
                "next_prayer": next_prayer.prayer if next_prayer else None,
            }
        return CountdownResponse(**alarm_app.call_engine(read))

    return router
