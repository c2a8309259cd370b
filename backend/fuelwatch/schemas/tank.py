from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class TankBase(BaseModel):
    name: str
    location: Optional[str] = None
    group_name: Optional[str] = None
    customer_name: Optional[str] = None
    unit_number: Optional[str] = None
    tank_number: Optional[str] = None
    description: Optional[str] = None
    capacity: float = Field(..., gt=0)
    min_level: float = Field(0.0, ge=0)


class TankCreate(TankBase):
    pass


class TankUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    group_name: Optional[str] = None
    customer_name: Optional[str] = None
    unit_number: Optional[str] = None
    tank_number: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[float] = Field(None, gt=0)
    min_level: Optional[float] = Field(None, ge=0)


class TankResponse(TankBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TankSummary(TankResponse):
    """Tank row for list pages, with the latest level and its zone."""
    current_level: Optional[float] = None
    fill_percentage: Optional[float] = None
    status: str = "no_data"
    last_reading: Optional[datetime] = None


class DipReadingCreate(BaseModel):
    timestamp: datetime
    value: float = Field(..., ge=0)
    recorded_by: Optional[str] = None
    notes: Optional[str] = None


class DipReadingResponse(BaseModel):
    id: int
    tank_id: int
    timestamp: datetime
    value: float
    recorded_by: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class DipHistoryRow(BaseModel):
    """A reading joined to its tank; unknown tanks get placeholder names."""
    id: int
    tank_id: int
    tank_name: str
    customer_name: str
    group_name: Optional[str] = None
    unit_number: Optional[str] = None
    tank_number: Optional[str] = None
    timestamp: datetime
    value: float
    recorded_by: Optional[str] = None
    notes: Optional[str] = None
