from pydantic import BaseModel
from datetime import datetime
from typing import List, Literal, Optional


class AgbotReading(BaseModel):
    reading_timestamp: datetime
    calibrated_fill_percentage: float
    raw_fill_percentage: Optional[float] = None
    device_online: bool = True

    class Config:
        frozen = True


class AgbotRefillEvent(BaseModel):
    date: datetime
    percentage_increase: float


class AgbotAnalytics(BaseModel):
    rolling_avg_pct_per_day: float = 0.0
    prev_day_pct_used: float = 0.0
    days_to_critical_level: Optional[float] = None
    consumption_velocity: float = 0.0
    efficiency_score: float = 100.0
    data_reliability_score: float = 0.0
    last_refill_date: Optional[datetime] = None
    refill_frequency_days: Optional[float] = None
    predicted_next_refill: Optional[datetime] = None
    refill_events: List[AgbotRefillEvent] = []
    weekly_pattern: List[float] = [0.0] * 7  # Monday first
    consumption_trend: Literal["increasing", "decreasing", "stable"] = "stable"
    unusual_consumption_alert: bool = False
    potential_leak_alert: bool = False
    device_connectivity_alert: bool = False


class AgbotAnalyticsRequest(BaseModel):
    readings: List[AgbotReading]
