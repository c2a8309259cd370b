"""
Analytics for Agbot cellular tank monitors, which report fill percentage rather
than volume. Consumption figures are percentage points.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence
import logging

from fuelwatch.config import settings
from fuelwatch.schemas.agbot import AgbotAnalytics, AgbotReading, AgbotRefillEvent

logger = logging.getLogger(__name__)

# Expected reporting interval is hourly
GAP_HOURS = 2
MAX_GAP_PENALTY = 10


def _days(older: datetime, newer: datetime) -> float:
    return abs((newer - older).total_seconds()) / 86400


def _ordered(readings: Sequence[AgbotReading]) -> List[AgbotReading]:
    return sorted(readings, key=lambda r: r.reading_timestamp)


def consumption_between(older: AgbotReading, newer: AgbotReading) -> float:
    return max(0.0, older.calibrated_fill_percentage - newer.calibrated_fill_percentage)


def is_refill(older: AgbotReading, newer: AgbotReading, threshold: Optional[float] = None) -> bool:
    threshold = settings.agbot_refill_threshold_pct if threshold is None else threshold
    return newer.calibrated_fill_percentage - older.calibrated_fill_percentage >= threshold


def rolling_average(readings: Sequence[AgbotReading]) -> float:
    """Percentage points consumed per day, ignoring refill intervals."""
    ordered = _ordered(readings)
    consumed = days = 0.0
    for older, newer in zip(ordered, ordered[1:]):
        if is_refill(older, newer):
            continue
        used = consumption_between(older, newer)
        span = _days(older.reading_timestamp, newer.reading_timestamp)
        if span > 0 and used > 0:
            consumed += used
            days += span
    return round(consumed / days, 2) if days > 0 else 0.0


def previous_day_consumption(readings: Sequence[AgbotReading], now: datetime) -> float:
    ordered = _ordered(readings)
    if len(ordered) < 2:
        return 0.0
    window = [r for r in ordered if now - timedelta(days=1) <= r.reading_timestamp < now]
    if len(window) >= 2:
        return round(consumption_between(window[0], window[-1]), 2)

    # Fewer than two readings in the last day: scale the latest interval to 24h
    older, newer = ordered[-2], ordered[-1]
    hours = _days(older.reading_timestamp, newer.reading_timestamp) * 24
    return round(consumption_between(older, newer) * 24 / hours, 2) if hours > 0 else 0.0


def days_to_critical(current_pct: float, daily_rate: float, critical_pct: Optional[float] = None) -> Optional[float]:
    critical = settings.agbot_critical_level_pct if critical_pct is None else critical_pct
    if daily_rate <= 0 or current_pct <= critical:
        return None
    return round((current_pct - critical) / daily_rate, 1)


def consumption_velocity(readings: Sequence[AgbotReading]) -> float:
    """Second-half rate minus first-half rate; positive means accelerating."""
    ordered = _ordered(readings)
    if len(ordered) < 4:
        return 0.0
    mid = len(ordered) // 2
    return round(rolling_average(ordered[mid:]) - rolling_average(ordered[:mid]), 2)


def consumption_trend(velocity: float) -> str:
    if abs(velocity) < 0.1:
        return "stable"
    return "increasing" if velocity > 0 else "decreasing"


def refill_pattern(readings: Sequence[AgbotReading]) -> dict:
    ordered = _ordered(readings)
    events = [
        AgbotRefillEvent(
            date=newer.reading_timestamp,
            percentage_increase=round(newer.calibrated_fill_percentage - older.calibrated_fill_percentage, 2),
        )
        for older, newer in zip(ordered, ordered[1:])
        if is_refill(older, newer)
    ]
    frequency = None
    if len(events) > 1:
        gaps = [_days(a.date, b.date) for a, b in zip(events, events[1:])]
        frequency = round(sum(gaps) / len(gaps), 1)
    return {
        "last_refill_date": events[-1].date if events else None,
        "refill_frequency_days": frequency,
        "refill_events": events,
    }


def reliability_score(readings: Sequence[AgbotReading]) -> float:
    """Device uptime percentage less a penalty for each reporting gap."""
    if not readings:
        return 0.0
    ordered = _ordered(readings)
    uptime = sum(1 for r in ordered if r.device_online) / len(ordered) * 100
    penalty = 0.0
    for older, newer in zip(ordered, ordered[1:]):
        hours = _days(older.reading_timestamp, newer.reading_timestamp) * 24
        if hours > GAP_HOURS:
            penalty += min(MAX_GAP_PENALTY, hours - 1)
    return round(max(0.0, uptime - penalty), 1)


def efficiency_score(daily_rate: float, baseline: Optional[float] = None) -> float:
    """100 at the baseline rate, higher when consuming less, capped at 200."""
    baseline = settings.agbot_baseline_pct_per_day if baseline is None else baseline
    if daily_rate <= 0:
        return 100.0
    return round(min(200.0, max(0.0, baseline / daily_rate * 100)), 1)


def weekly_pattern(readings: Sequence[AgbotReading]) -> List[float]:
    """Average consumption per interval ending on each weekday, Monday first."""
    ordered = _ordered(readings)
    if len(ordered) < 7:
        return [0.0] * 7
    totals = [0.0] * 7
    counts = [0] * 7
    for older, newer in zip(ordered, ordered[1:]):
        if is_refill(older, newer):
            continue
        day = newer.reading_timestamp.weekday()
        totals[day] += consumption_between(older, newer)
        counts[day] += 1
    return [round(t / c, 2) if c else 0.0 for t, c in zip(totals, counts)]


def analyze_agbot(readings: Sequence[AgbotReading], now: Optional[datetime] = None) -> AgbotAnalytics:
    ordered = _ordered(readings)
    if not ordered:
        return AgbotAnalytics()
    now = now or ordered[-1].reading_timestamp
    baseline = settings.agbot_baseline_pct_per_day

    rate = rolling_average(ordered)
    velocity = consumption_velocity(ordered)
    refills = refill_pattern(ordered)
    reliability = reliability_score(ordered)

    predicted = None
    if refills["last_refill_date"] and refills["refill_frequency_days"]:
        predicted = refills["last_refill_date"] + timedelta(days=refills["refill_frequency_days"])

    unusual = rate > baseline * 1.5
    # Roughly the last three days of hourly readings
    recent = ordered[-72:]
    sustained_high = len(recent) > 24 and rolling_average(recent) > baseline * 2

    logger.debug(f"Agbot analytics over {len(ordered)} readings: {rate}%/day, velocity {velocity}")
    return AgbotAnalytics(
        rolling_avg_pct_per_day=rate,
        prev_day_pct_used=previous_day_consumption(ordered, now),
        days_to_critical_level=days_to_critical(ordered[-1].calibrated_fill_percentage, rate),
        consumption_velocity=velocity,
        efficiency_score=efficiency_score(rate),
        data_reliability_score=reliability,
        predicted_next_refill=predicted,
        weekly_pattern=weekly_pattern(ordered),
        consumption_trend=consumption_trend(velocity),
        unusual_consumption_alert=unusual,
        potential_leak_alert=unusual and sustained_high,
        device_connectivity_alert=reliability < 80,
        **refills,
    )
