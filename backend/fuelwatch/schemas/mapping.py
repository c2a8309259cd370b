from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from fuelwatch.models.device_mapping import ExternalSystem, MappingSource


class MappingCreate(BaseModel):
    """
    New mapping. There is deliberately no fleet or registration field: both are
    copied from the selected vehicle, and supplying them is a validation error.
    """
    system: ExternalSystem
    external_id: str = Field(..., min_length=1)
    vehicle_id: int
    mapping_source: MappingSource = MappingSource.MANUAL
    confidence_score: float = Field(1.0, ge=0, le=1)
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class MappingUpdate(BaseModel):
    external_id: Optional[str] = Field(None, min_length=1)
    vehicle_id: Optional[int] = None
    confidence_score: Optional[float] = Field(None, ge=0, le=1)
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class MappingResponse(BaseModel):
    id: int
    system: str
    external_id: str
    vehicle_id: int
    vehicle_registration: str
    fleet: str
    mapping_source: str
    confidence_score: Optional[float] = None
    verified: bool
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
