"""
SQLAlchemy model for application settings (single row) and the Settings snapshot.
"""
from collections import namedtuple
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, JSON

from azan_alarm.core.db import Base
from azan_alarm.plugins.prayer.prayer_base import ALADHAN_METHODS, ALADHAN_SCHOOLS

SETTINGS_ROW_ID = 1

CALCULATION_METHODS = tuple(ALADHAN_METHODS)
JURISTIC_METHODS = tuple(ALADHAN_SCHOOLS)
THEMES = ("light", "dark", "system")

Settings = namedtuple(
    "Settings",
    [
        "calculation_method",
        "juristic_method",
        "audio_theme",
        "is_24_hour_format",
        "enable_notifications",
        "enable_vibration",
        "theme",
        "language",
    ],
)

DEFAULT_SETTINGS = Settings(
    calculation_method="muslim_world_league",
    juristic_method="shafii",
    audio_theme="default",
    is_24_hour_format=False,
    enable_notifications=True,
    enable_vibration=True,
    theme="system",
    language="en",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def settings_from_dict(data: Dict[str, Any]) -> Settings:
    """Build Settings from a (possibly partial) dict; missing or unknown keys fall back to defaults."""
    values = DEFAULT_SETTINGS._asdict()
    values.update({k: v for k, v in (data or {}).items() if k in Settings._fields})
    return Settings(**values)


class SettingsRecord(Base):
    """The single settings row; data is the JSON form of Settings."""
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)
