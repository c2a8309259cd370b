from pydantic import BaseModel
from datetime import datetime
from typing import List, Literal, Optional

Trend = Literal["increasing", "decreasing", "stable"]


class ReadingPoint(BaseModel):
    """A timestamped level for one tank, as consumed by the analytics functions."""
    timestamp: datetime
    value: float
    device_id: Optional[int] = None
    recorded_by: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        frozen = True
        from_attributes = True


class TankProfile(BaseModel):
    capacity: Optional[float] = None
    min_level: Optional[float] = None

    class Config:
        frozen = True


class RefuelEvent(BaseModel):
    date: datetime
    volume_added: float
    before_level: float
    after_level: float
    time_since_last: Optional[float] = None  # days since the previous refuel


class ConsumptionMetrics(BaseModel):
    daily_average_consumption: float = 0.0
    weekly_average_consumption: float = 0.0
    monthly_average_consumption: float = 0.0
    consumption_trend: Trend = "stable"
    peak_consumption_day: Optional[str] = None
    peak_consumption_value: float = 0.0
    low_consumption_day: Optional[str] = None
    low_consumption_value: float = 0.0
    total_consumed_last_30_days: float = 0.0
    total_consumed_in_period: float = 0.0
    consumption_stability_score: float = 0.0


class RefuelAnalytics(BaseModel):
    total_refuels: int = 0
    average_refuel_volume: float = 0.0
    average_days_between_refuels: float = 0.0
    days_since_last_refuel: Optional[int] = None
    last_refuel_date: Optional[datetime] = None
    next_predicted_refuel: Optional[datetime] = None
    next_predicted_refuel_days: Optional[int] = None
    refuel_efficiency: float = 0.0
    largest_refuel_volume: float = 0.0


class TimeInZones(BaseModel):
    critical: float = 0.0
    low: float = 0.0
    normal: float = 0.0
    high: float = 0.0


class TankPerformance(BaseModel):
    average_fill_percentage: float = 0.0
    time_in_zones: TimeInZones = TimeInZones()
    capacity_utilisation_rate: float = 0.0
    operational_efficiency_score: float = 0.0
    last_critical_at: Optional[datetime] = None
    lowest_level_reached: float = 0.0
    highest_level_reached: float = 0.0


class PeriodConsumption(BaseModel):
    period: str
    average: float
    total: float


class SeasonalAnalysis(BaseModel):
    monthly_consumption: List[PeriodConsumption] = []
    seasonal_consumption: List[PeriodConsumption] = []
    highest_consumption_month: Optional[PeriodConsumption] = None
    lowest_consumption_month: Optional[PeriodConsumption] = None
    monthly_variation: float = 0.0
    seasonal_pattern: str = "Insufficient data"


class OperationalInsights(BaseModel):
    below_min_level_count: int = 0
    critical_level_count: int = 0
    last_low_fuel_at: Optional[datetime] = None
    readings_per_weekday: float = 0.0
    readings_per_week: float = 0.0
    consistency_score: float = 0.0
    completeness_score: float = 0.0
    large_volume_changes: int = 0
    compliance_score: float = 0.0


class FuelAnalytics(BaseModel):
    tank_id: Optional[int] = None
    reading_count: int = 0
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    refuel_events: List[RefuelEvent] = []
    consumption: ConsumptionMetrics = ConsumptionMetrics()
    refuels: RefuelAnalytics = RefuelAnalytics()
    performance: TankPerformance = TankPerformance()
    seasonal: SeasonalAnalysis = SeasonalAnalysis()
    operations: OperationalInsights = OperationalInsights()
    insights: List[str] = []
    alerts: List[str] = []
