from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VehicleBase(BaseModel):
    registration: str
    fleet: str
    status: str = "Active"
    depot: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(BaseModel):
    registration: Optional[str] = None
    fleet: Optional[str] = None
    status: Optional[str] = None
    depot: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None


class VehicleResponse(VehicleBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
