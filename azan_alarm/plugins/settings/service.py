"""
Service layer: load and save the settings row.
"""
import logging
from typing import Callable, List

from azan_alarm.core.db import session_scope
from azan_alarm.plugins.settings.models import (
    CALCULATION_METHODS,
    DEFAULT_SETTINGS,
    JURISTIC_METHODS,
    SETTINGS_ROW_ID,
    THEMES,
    Settings,
    SettingsRecord,
    settings_from_dict,
)


def validate_settings(settings: Settings) -> None:
    if settings.calculation_method not in CALCULATION_METHODS:
        raise ValueError(f"Unknown calculation method: {settings.calculation_method!r}")
    if settings.juristic_method not in JURISTIC_METHODS:
        raise ValueError(f"Unknown juristic method: {settings.juristic_method!r}")
    if settings.theme not in THEMES:
        raise ValueError(f"Unknown theme: {settings.theme!r}")


class SettingsService:
    """Settings provider. Returns DEFAULT_SETTINGS until something is saved."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.change_callbacks: List[Callable[[], None]] = []

    def register_change_callback(self, callback: Callable[[], None]) -> None:
        self.change_callbacks.append(callback)

    def get_settings(self) -> Settings:
        with session_scope() as session:
            row = session.get(SettingsRecord, SETTINGS_ROW_ID)
            if row is None:
                return DEFAULT_SETTINGS
            return settings_from_dict(row.data)

    def save_settings(self, settings: Settings) -> Settings:
        validate_settings(settings)
        with session_scope() as session:
            row = session.get(SettingsRecord, SETTINGS_ROW_ID)
            if row is None:
                session.add(SettingsRecord(id=SETTINGS_ROW_ID, data=settings._asdict()))
            else:
                row.data = settings._asdict()
        self.logger.info(f"Settings saved: {settings}")
        for callback in self.change_callbacks:
            try:
                callback()
            except Exception as e:
                self.logger.error(f"Error in settings change callback: {e}")
        return settings

    def reset_to_defaults(self) -> Settings:
        return self.save_settings(DEFAULT_SETTINGS)
