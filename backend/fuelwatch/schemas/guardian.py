from pydantic import BaseModel
from datetime import datetime
from typing import Literal, Optional


class CategoryCompliance(BaseModel):
    total: int = 0
    verified: int = 0
    verification_rate: float = 0.0
    trend: float = 0.0  # % change against the previous equal-length period
    driver_attribution_rate: float = 0.0


class FatigueCompliance(CategoryCompliance):
    last_24h: int = 0


class ComplianceMetrics(BaseModel):
    distraction: CategoryCompliance = CategoryCompliance()
    fatigue: FatigueCompliance = FatigueCompliance()


class MonthlyTrend(BaseModel):
    month: str  # YYYY-MM
    total: int
    verified: int


class FatigueTrend(BaseModel):
    current: int
    previous: int
    change: float
    change_direction: Literal["up", "down", "stable"]


class CriticalFatigueEvent(BaseModel):
    id: int
    vehicle_registration: Optional[str] = None
    occurred_at: datetime
    event_type: Optional[str] = None
    severity: Optional[str] = None
    verified: bool = False
    fleet: Optional[str] = None
    driver_name: Optional[str] = None
    is_recent: bool = False
