from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class FleetEventCreate(BaseModel):
    system: str
    external_id: Optional[str] = None
    external_event_id: Optional[str] = None
    vehicle_registration: Optional[str] = None
    fleet: Optional[str] = None
    occurred_at: datetime
    event_type: Optional[str] = None
    severity: Optional[str] = None
    verified: bool = False
    confirmation: Optional[str] = None
    driver_name: Optional[str] = None
    driver_id: Optional[int] = None
    duration_seconds: Optional[float] = None
    speed_kph: Optional[float] = None


class FleetEventResponse(FleetEventCreate):
    id: int

    class Config:
        from_attributes = True
