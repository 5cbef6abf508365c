"""
Per-plugin API for user alarms. Mounted at /api/components/alarms/.
Validation errors map to 400, unknown ids to 404.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from .models import Alarm
from .service import AlarmNotFoundError


class AlarmIn(BaseModel):
    prayer: str
    offset_minutes: int = 0
    label: str = ""
    repeat_days: List[int] = Field(default_factory=list)
    is_active: bool = True
    vibration_enabled: bool = True
    sound_path: str = ""


class AlarmResponse(AlarmIn):
    id: int
    display_label: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_alarm(cls, alarm: Alarm) -> "AlarmResponse":
        return cls(display_label=alarm.display_label(), **alarm._asdict())


class ToggleRequest(BaseModel):
    is_active: bool


def get_router(alarm_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/alarms."""
    router = APIRouter(tags=["Alarms"])
    service = alarm_app.alarm_service

    @router.get("", response_model=List[AlarmResponse])
    def list_alarms() -> List[AlarmResponse]:
        return [AlarmResponse.from_alarm(a) for a in service.get_alarms()]

    @router.post("", response_model=AlarmResponse, status_code=201)
    def create_alarm(body: AlarmIn) -> AlarmResponse:
        try:
            created = service.create_alarm(Alarm(id=0, **body.model_dump()))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return AlarmResponse.from_alarm(created)

    @router.get("/{alarm_id}", response_model=AlarmResponse)
    def get_alarm(alarm_id: int) -> AlarmResponse:
        try:
            return AlarmResponse.from_alarm(service.get_alarm(alarm_id))
        except AlarmNotFoundError:
            raise HTTPException(status_code=404, detail=f"Alarm {alarm_id} not found")

    @router.put("/{alarm_id}", response_model=AlarmResponse)
    def update_alarm(alarm_id: int, body: AlarmIn) -> AlarmResponse:
        try:
            updated = service.update_alarm(Alarm(id=alarm_id, **body.model_dump()))
        except AlarmNotFoundError:
            raise HTTPException(status_code=404, detail=f"Alarm {alarm_id} not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return AlarmResponse.from_alarm(updated)

    @router.delete("/{alarm_id}", status_code=204)
    def delete_alarm(alarm_id: int) -> Response:
        try:
            service.delete_alarm(alarm_id)
        except AlarmNotFoundError:
            raise HTTPException(status_code=404, detail=f"Alarm {alarm_id} not found")
        return Response(status_code=204)

    @router.post("/{alarm_id}/toggle", response_model=AlarmResponse)
    def toggle_alarm(alarm_id: int, body: ToggleRequest) -> AlarmResponse:
        try:
            return AlarmResponse.from_alarm(service.toggle_alarm(alarm_id, body.is_active))
        except AlarmNotFoundError:
            raise HTTPException(status_code=404, detail=f"Alarm {alarm_id} not found")

    return router
