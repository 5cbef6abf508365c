"""
Per-plugin API for application settings. Mounted at /api/components/settings/.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from .models import Settings


class SettingsModel(BaseModel):
    calculation_method: str
    juristic_method: str
    audio_theme: str
    is_24_hour_format: bool
    enable_notifications: bool
    enable_vibration: bool
    theme: str
    language: str


class SettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    calculation_method: Optional[str] = None
    juristic_method: Optional[str] = None
    audio_theme: Optional[str] = None
    is_24_hour_format: Optional[bool] = None
    enable_notifications: Optional[bool] = None
    enable_vibration: Optional[bool] = None
    theme: Optional[str] = None
    language: Optional[str] = None


def get_router(alarm_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/settings."""
    router = APIRouter(tags=["Settings"])
    service = alarm_app.settings_service

    @router.get("", response_model=SettingsModel)
    def get_settings() -> SettingsModel:
        return SettingsModel(**service.get_settings()._asdict())

    @router.put("", response_model=SettingsModel)
    def update_settings(body: SettingsUpdate) -> SettingsModel:
        current: Settings = service.get_settings()
        updated = current._replace(**body.model_dump(exclude_none=True))
        try:
            saved = service.save_settings(updated)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return SettingsModel(**saved._asdict())

    @router.post("/reset", response_model=SettingsModel)
    def reset_settings() -> SettingsModel:
        return SettingsModel(**service.reset_to_defaults()._asdict())

    return router
