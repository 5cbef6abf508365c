"""
SQLAlchemy models for prayer times: one row per fetched day.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON

from azan_alarm.core.db import Base


class PrayerTimesRecord(Base):
    """One prayer times fetch. data is JSON: {prayer_name: ISO datetime string}."""
    __tablename__ = "prayer_times_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    backend = Column(String(64), nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=False), nullable=False, index=True)
    prayer_date = Column(Date, nullable=False, index=True)
    data = Column(JSON, nullable=False)  # {prayer_name: ISO string}
