"""
Dip reading analytics: refuel detection, consumption, tank performance,
seasonal patterns and reading compliance.

Every function here is pure. Input is a sequence of ReadingPoint for a single
tank; sparse input (fewer than two readings, missing capacity) produces zeroed
results rather than errors.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from fuelwatch.cache import memoize_pure
from fuelwatch.config import settings
from fuelwatch.schemas.analytics import (
    ConsumptionMetrics,
    FuelAnalytics,
    OperationalInsights,
    PeriodConsumption,
    ReadingPoint,
    RefuelAnalytics,
    RefuelEvent,
    SeasonalAnalysis,
    TankPerformance,
    TankProfile,
    TimeInZones,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
# Southern hemisphere seasons
SEASON_ORDER = ["Summer", "Autumn", "Winter", "Spring"]


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _ordered(readings: Sequence[ReadingPoint]) -> List[ReadingPoint]:
    return sorted(readings, key=lambda r: r.timestamp)


def _round(value: float, digits: int = 2) -> float:
    return round(float(value), digits)


def season_for_month(month: int) -> str:
    if month in (3, 4, 5):
        return "Autumn"
    if month in (6, 7, 8):
        return "Winter"
    if month in (9, 10, 11):
        return "Spring"
    return "Summer"


def effective_capacity(readings: Sequence[ReadingPoint], capacity: Optional[float]) -> Optional[float]:
    """Configured capacity, or the highest observed level when none is set."""
    if capacity and capacity > 0:
        return float(capacity)
    values = [r.value for r in readings]
    if values and max(values) > 0:
        return float(max(values))
    return None


def fill_percentage(value: float, capacity: Optional[float]) -> Optional[float]:
    if not capacity or capacity <= 0:
        return None
    return value / capacity * 100.0


def zone_for(percent: Optional[float]) -> str:
    if percent is None:
        return "no_data"
    if percent <= settings.critical_zone_pct:
        return "critical"
    if percent <= settings.low_zone_pct:
        return "low"
    if percent <= settings.normal_zone_pct:
        return "normal"
    return "high"


def consumption_intervals(readings: Sequence[ReadingPoint]) -> List[Tuple[datetime, float, float]]:
    """
    (end timestamp, volume dropped, elapsed days) for every consecutive pair
    whose level fell. Rises, refuels included, never count as consumption.
    """
    ordered = _ordered(readings)
    intervals = []
    for prev, curr in zip(ordered, ordered[1:]):
        drop = prev.value - curr.value
        if drop > 0:
            intervals.append((curr.timestamp, drop, _days_between(prev.timestamp, curr.timestamp)))
    return intervals


def detect_refuel_events(
    readings: Sequence[ReadingPoint],
    capacity: Optional[float],
    threshold_fraction: Optional[float] = None,
) -> List[RefuelEvent]:
    """A refuel is a reading-to-reading rise larger than threshold_fraction of capacity."""
    if threshold_fraction is None:
        threshold_fraction = settings.refuel_threshold_fraction
    ordered = _ordered(readings)
    cap = effective_capacity(ordered, capacity)
    if len(ordered) < 2 or cap is None:
        return []

    threshold = threshold_fraction * cap
    events: List[RefuelEvent] = []
    for prev, curr in zip(ordered, ordered[1:]):
        added = curr.value - prev.value
        if added > threshold:
            since_last = None
            if events:
                since_last = _round(_days_between(events[-1].date, curr.timestamp))
            events.append(RefuelEvent(
                date=curr.timestamp,
                volume_added=_round(added),
                before_level=prev.value,
                after_level=curr.value,
                time_since_last=since_last,
            ))
    return events


def classify_trend(rates: Sequence[float], tolerance_pct: Optional[float] = None) -> str:
    """Compare the mean of the second half of the rates to the first half."""
    if tolerance_pct is None:
        tolerance_pct = settings.trend_tolerance_pct
    if len(rates) < 2:
        return "stable"
    mid = len(rates) // 2
    first = float(np.mean(rates[:mid]))
    second = float(np.mean(rates[mid:]))
    if first == 0:
        return "increasing" if second > 0 else "stable"
    change_pct = (second - first) / first * 100.0
    if change_pct > tolerance_pct:
        return "increasing"
    if change_pct < -tolerance_pct:
        return "decreasing"
    return "stable"


def stability_score(values: Sequence[float]) -> float:
    """100 minus the coefficient of variation (in %), clamped to [0, 100]."""
    if not values:
        return 0.0
    mean = float(np.mean(values))
    if mean <= 0:
        return 0.0
    cv = float(np.std(values)) / mean * 100.0
    return _round(max(0.0, min(100.0, 100.0 - cv)))


def calculate_consumption_metrics(
    readings: Sequence[ReadingPoint],
    as_of: Optional[datetime] = None,
    tolerance_pct: Optional[float] = None,
) -> ConsumptionMetrics:
    ordered = _ordered(readings)
    if len(ordered) < 2:
        return ConsumptionMetrics()

    intervals = consumption_intervals(ordered)
    if not intervals:
        return ConsumptionMetrics()

    daily: "OrderedDict[str, float]" = OrderedDict()
    weekly: Dict[str, float] = {}
    monthly: Dict[str, float] = {}
    for end, drop, _ in intervals:
        day_key = end.date().isoformat()
        iso_year, iso_week, _ = end.isocalendar()
        week_key = f"{iso_year}-W{iso_week:02d}"
        month_key = f"{end.year}-{end.month:02d}"
        daily[day_key] = daily.get(day_key, 0.0) + drop
        weekly[week_key] = weekly.get(week_key, 0.0) + drop
        monthly[month_key] = monthly.get(month_key, 0.0) + drop

    total_consumed = sum(drop for _, drop, _ in intervals)
    timed = [(drop, days) for _, drop, days in intervals if days > 0]
    total_days = sum(days for _, days in timed)
    daily_average = sum(drop for drop, _ in timed) / total_days if total_days > 0 else 0.0

    rates = [drop / days for drop, days in timed]
    trend = classify_trend(rates, tolerance_pct)

    peak_day, peak_value = None, 0.0
    low_day, low_value = None, None
    for day, value in daily.items():
        if value > peak_value:
            peak_day, peak_value = day, value
        if low_value is None or value < low_value:
            low_day, low_value = day, value

    window_end = as_of or ordered[-1].timestamp
    cutoff = (window_end - timedelta(days=30)).date().isoformat()
    last_30 = sum(value for day, value in daily.items() if day >= cutoff)

    return ConsumptionMetrics(
        daily_average_consumption=_round(daily_average),
        weekly_average_consumption=_round(np.mean(list(weekly.values()))),
        monthly_average_consumption=_round(np.mean(list(monthly.values()))),
        consumption_trend=trend,
        peak_consumption_day=peak_day,
        peak_consumption_value=_round(peak_value),
        low_consumption_day=low_day,
        low_consumption_value=_round(low_value or 0.0),
        total_consumed_last_30_days=_round(last_30),
        total_consumed_in_period=_round(total_consumed),
        consumption_stability_score=stability_score(list(daily.values())),
    )


def calculate_refuel_analytics(
    refuel_events: Sequence[RefuelEvent],
    readings: Sequence[ReadingPoint],
    capacity: Optional[float],
    as_of: Optional[datetime] = None,
) -> RefuelAnalytics:
    if not refuel_events:
        return RefuelAnalytics()

    ordered = _ordered(readings)
    cap = effective_capacity(ordered, capacity)
    volumes = [e.volume_added for e in refuel_events]
    intervals = [e.time_since_last for e in refuel_events if e.time_since_last]
    average_interval = float(np.mean(intervals)) if intervals else 0.0

    last = refuel_events[-1]
    window_end = as_of or (ordered[-1].timestamp if ordered else last.date)
    days_since = max(0, int(_days_between(last.date, window_end)))

    next_days = None
    next_date = None
    if average_interval > 0:
        next_days = max(0, round(average_interval - days_since))
        next_date = window_end + timedelta(days=next_days)

    efficiency = float(np.mean([v / cap * 100.0 for v in volumes])) if cap else 0.0

    return RefuelAnalytics(
        total_refuels=len(refuel_events),
        average_refuel_volume=_round(np.mean(volumes)),
        average_days_between_refuels=_round(average_interval),
        days_since_last_refuel=days_since,
        last_refuel_date=last.date,
        next_predicted_refuel=next_date,
        next_predicted_refuel_days=next_days,
        refuel_efficiency=_round(efficiency),
        largest_refuel_volume=_round(max(volumes)),
    )


def calculate_time_in_zones(readings: Sequence[ReadingPoint], capacity: Optional[float]) -> TimeInZones:
    """
    Share of the window spent in each fill band. A reading's level holds until
    the next reading, so the last reading carries no weight.
    """
    ordered = _ordered(readings)
    if len(ordered) < 2 or not capacity or capacity <= 0:
        return TimeInZones()

    hours = {"critical": 0.0, "low": 0.0, "normal": 0.0, "high": 0.0}
    for curr, nxt in zip(ordered, ordered[1:]):
        zone = zone_for(fill_percentage(curr.value, capacity))
        hours[zone] += (nxt.timestamp - curr.timestamp).total_seconds() / 3600.0

    total = sum(hours.values())
    if total <= 0:
        return TimeInZones()
    return TimeInZones(**{zone: _round(h / total * 100.0) for zone, h in hours.items()})


def calculate_tank_performance(
    readings: Sequence[ReadingPoint],
    capacity: Optional[float],
    min_level: Optional[float] = None,
) -> TankPerformance:
    ordered = _ordered(readings)
    if not ordered:
        return TankPerformance()

    values = [r.value for r in ordered]
    lowest, highest = min(values), max(values)
    if not capacity or capacity <= 0:
        return TankPerformance(lowest_level_reached=lowest, highest_level_reached=highest)

    percentages = [fill_percentage(v, capacity) for v in values]
    zones = calculate_time_in_zones(ordered, capacity)

    last_critical = None
    for reading, pct in zip(ordered, percentages):
        if zone_for(pct) == "critical":
            last_critical = reading.timestamp

    usable = capacity - (min_level or 0.0)
    if usable <= 0:
        usable = capacity
    utilisation = (highest - lowest) / usable * 100.0
    average_fill = float(np.mean(percentages))

    critical_penalty = min(30.0, zones.critical * 3.0)
    fill_score = min(40.0, average_fill / 100.0 * 40.0)
    utilisation_score = min(30.0, utilisation / 100.0 * 30.0)
    efficiency = max(0.0, min(100.0, (30.0 - critical_penalty) + fill_score + utilisation_score))

    return TankPerformance(
        average_fill_percentage=_round(average_fill),
        time_in_zones=zones,
        capacity_utilisation_rate=_round(utilisation),
        operational_efficiency_score=_round(efficiency),
        last_critical_at=last_critical,
        lowest_level_reached=lowest,
        highest_level_reached=highest,
    )


def calculate_seasonal_analysis(readings: Sequence[ReadingPoint]) -> SeasonalAnalysis:
    intervals = consumption_intervals(readings)
    if not intervals:
        return SeasonalAnalysis()

    monthly: Dict[int, List[float]] = {}
    seasonal: Dict[str, List[float]] = {}
    for end, drop, _ in intervals:
        monthly.setdefault(end.month, []).append(drop)
        seasonal.setdefault(season_for_month(end.month), []).append(drop)

    monthly_rows = [
        PeriodConsumption(period=MONTH_NAMES[m - 1], average=_round(np.mean(v)), total=_round(sum(v)))
        for m, v in sorted(monthly.items())
    ]
    seasonal_rows = [
        PeriodConsumption(period=s, average=_round(np.mean(seasonal[s])), total=_round(sum(seasonal[s])))
        for s in SEASON_ORDER if s in seasonal
    ]

    highest = max(monthly_rows, key=lambda r: r.average)
    positive = [r for r in monthly_rows if r.average > 0]
    lowest = min(positive, key=lambda r: r.average) if positive else None

    averages = [r.average for r in positive]
    variation = 0.0
    if averages:
        overall = float(np.mean(averages))
        if overall > 0:
            variation = float(np.mean([abs(a - overall) / overall * 100.0 for a in averages]))

    pattern = "Insufficient data"
    if len(seasonal_rows) >= 2:
        ranked = sorted(seasonal_rows, key=lambda r: r.average, reverse=True)
        pattern = f"Peak: {ranked[0].period}, Low: {ranked[-1].period}"

    return SeasonalAnalysis(
        monthly_consumption=monthly_rows,
        seasonal_consumption=seasonal_rows,
        highest_consumption_month=highest,
        lowest_consumption_month=lowest,
        monthly_variation=_round(variation),
        seasonal_pattern=pattern,
    )


def calculate_operational_insights(
    readings: Sequence[ReadingPoint],
    capacity: Optional[float],
    min_level: Optional[float] = None,
) -> OperationalInsights:
    """Low-fuel occurrences and how regularly the tank is dipped on weekdays."""
    ordered = _ordered(readings)
    if not ordered:
        return OperationalInsights()

    below_min = 0
    critical = 0
    last_low = None
    for reading in ordered:
        if min_level and reading.value < min_level:
            below_min += 1
            last_low = reading.timestamp
        if zone_for(fill_percentage(reading.value, capacity)) == "critical":
            critical += 1
            last_low = reading.timestamp

    weekday = [r for r in ordered if r.timestamp.weekday() < 5]
    per_day = 0.0
    consistency = 0.0
    if len(weekday) > 1:
        span = _days_between(weekday[0].timestamp, weekday[-1].timestamp)
        weekdays_in_span = (span // 7) * 5 + min(5.0, span % 7)
        if weekdays_in_span > 0:
            per_day = len(weekday) / weekdays_in_span
        gaps = [
            (b.timestamp - a.timestamp).total_seconds() / 3600.0
            for a, b in zip(weekday, weekday[1:])
        ]
        mean_gap = float(np.mean(gaps))
        if mean_gap > 0:
            consistency = max(0.0, min(100.0, 100.0 - float(np.std(gaps)) / mean_gap * 100.0))

    cap = effective_capacity(ordered, capacity)
    large_changes = 0
    if cap:
        large_changes = sum(
            1 for a, b in zip(ordered, ordered[1:]) if abs(b.value - a.value) > 0.5 * cap
        )

    completeness = min(100.0, per_day * 100.0)
    return OperationalInsights(
        below_min_level_count=below_min,
        critical_level_count=critical,
        last_low_fuel_at=last_low,
        readings_per_weekday=_round(per_day),
        readings_per_week=_round(per_day * 5),
        consistency_score=_round(consistency),
        completeness_score=_round(completeness),
        large_volume_changes=large_changes,
        compliance_score=_round((consistency + completeness) / 2.0),
    )


def generate_insights(
    refuel_events: Sequence[RefuelEvent],
    consumption: ConsumptionMetrics,
    refuels: RefuelAnalytics,
    seasonal: SeasonalAnalysis,
) -> List[str]:
    insights = []
    if len(refuel_events) >= 3:
        insights.append(f"Tank is refuelled every {round(refuels.average_days_between_refuels)} days on average")
        insights.append(f"Average refuel volume is {round(refuels.average_refuel_volume)}L")

    if consumption.consumption_trend == "increasing":
        insights.append("Fuel consumption is trending upward - consider investigating equipment efficiency")
    elif consumption.consumption_trend == "decreasing":
        insights.append("Fuel consumption is trending downward")

    if consumption.daily_average_consumption > 0:
        insights.append(f"Daily average consumption: {round(consumption.daily_average_consumption)}L")

    if refuels.next_predicted_refuel_days is not None:
        insights.append(f"Next refuel predicted in {refuels.next_predicted_refuel_days} days")

    if seasonal.highest_consumption_month and seasonal.lowest_consumption_month:
        insights.append(
            f"Highest consumption: {seasonal.highest_consumption_month.period} "
            f"({round(seasonal.highest_consumption_month.average)}L avg)"
        )
        insights.append(
            f"Lowest consumption: {seasonal.lowest_consumption_month.period} "
            f"({round(seasonal.lowest_consumption_month.average)}L avg)"
        )
    if seasonal.seasonal_pattern != "Insufficient data":
        insights.append(f"Seasonal pattern: {seasonal.seasonal_pattern}")
    if seasonal.monthly_variation > 20:
        insights.append(f"High seasonal variation (+/-{round(seasonal.monthly_variation)}%) - consider seasonal planning")
    return insights


def generate_alerts(
    readings: Sequence[ReadingPoint],
    capacity: Optional[float],
    consumption: ConsumptionMetrics,
    refuels: RefuelAnalytics,
) -> List[str]:
    alerts = []
    ordered = _ordered(readings)
    current = fill_percentage(ordered[-1].value, capacity) if ordered else None
    if current is not None and current < 30:
        alerts.append("Tank level below 30% - refuel may be required")
    if (
        refuels.days_since_last_refuel is not None
        and refuels.average_days_between_refuels > 0
        and refuels.days_since_last_refuel > 1.5 * refuels.average_days_between_refuels
    ):
        alerts.append("Refuel overdue - tank may need attention")
    if consumption.consumption_trend == "increasing":
        alerts.append("Fuel consumption increasing - review equipment efficiency")
    if refuels.refuel_efficiency > 90:
        alerts.append("Tank frequently filled to capacity - consider larger refuel intervals")
    return alerts


@memoize_pure(maxsize=settings.analytics_cache_size)
def _analyze(
    readings: Tuple[ReadingPoint, ...],
    profile: TankProfile,
    tank_id: Optional[int],
    as_of: Optional[datetime],
    threshold_fraction: float,
    tolerance_pct: float,
) -> FuelAnalytics:
    ordered = _ordered(readings)
    logger.debug(f"Analysing {len(ordered)} readings for tank {tank_id}")
    if len(ordered) < 2:
        return FuelAnalytics(
            tank_id=tank_id,
            reading_count=len(ordered),
            window_start=ordered[0].timestamp if ordered else None,
            window_end=ordered[-1].timestamp if ordered else None,
        )

    events = detect_refuel_events(ordered, profile.capacity, threshold_fraction)
    consumption = calculate_consumption_metrics(ordered, as_of, tolerance_pct)
    refuels = calculate_refuel_analytics(events, ordered, profile.capacity, as_of)
    performance = calculate_tank_performance(ordered, profile.capacity, profile.min_level)
    seasonal = calculate_seasonal_analysis(ordered)
    operations = calculate_operational_insights(ordered, profile.capacity, profile.min_level)

    return FuelAnalytics(
        tank_id=tank_id,
        reading_count=len(ordered),
        window_start=ordered[0].timestamp,
        window_end=ordered[-1].timestamp,
        refuel_events=events,
        consumption=consumption,
        refuels=refuels,
        performance=performance,
        seasonal=seasonal,
        operations=operations,
        insights=generate_insights(events, consumption, refuels, seasonal),
        alerts=generate_alerts(ordered, profile.capacity, consumption, refuels),
    )


def analyze_tank(
    readings: Sequence[ReadingPoint],
    profile: TankProfile,
    tank_id: Optional[int] = None,
    as_of: Optional[datetime] = None,
    threshold_fraction: Optional[float] = None,
    tolerance_pct: Optional[float] = None,
) -> FuelAnalytics:
    """Full analytics report for one tank. Memoised on its inputs."""
    return _analyze(
        tuple(readings),
        profile,
        tank_id,
        as_of,
        settings.refuel_threshold_fraction if threshold_fraction is None else threshold_fraction,
        settings.trend_tolerance_pct if tolerance_pct is None else tolerance_pct,
    )


analyze_tank.cache_clear = _analyze.cache_clear
analyze_tank.cache_info = _analyze.cache_info
