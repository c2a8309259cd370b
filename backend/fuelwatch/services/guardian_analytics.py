"""
Guardian driver-monitoring compliance analytics.

All functions take the current time explicitly so results are reproducible.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence
import logging

from fuelwatch.config import settings
from fuelwatch.schemas.guardian import (
    CategoryCompliance,
    ComplianceMetrics,
    CriticalFatigueEvent,
    FatigueCompliance,
    FatigueTrend,
    MonthlyTrend,
)
from fuelwatch.services.presentation import get_field

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}


def is_distraction(event: Any) -> bool:
    return "distraction" in (get_field(event, "event_type") or "").lower()


def is_fatigue(event: Any) -> bool:
    event_type = (get_field(event, "event_type") or "").lower()
    return "fatigue" in event_type or "microsleep" in event_type


def is_verified(event: Any) -> bool:
    return bool(get_field(event, "verified")) or get_field(event, "confirmation") == "verified"


def has_driver(event: Any) -> bool:
    return bool(get_field(event, "driver_id") or get_field(event, "driver_name"))


def percent_change(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 100.0 if current > 0 else 0.0


def _in_range(event: Any, start: datetime, end: datetime) -> bool:
    occurred = get_field(event, "occurred_at")
    return occurred is not None and start <= occurred <= end


def _category(events: Sequence[Any], previous_total: int) -> dict:
    total = len(events)
    verified = sum(1 for e in events if is_verified(e))
    attributed = sum(1 for e in events if has_driver(e))
    return {
        "total": total,
        "verified": verified,
        "verification_rate": round(verified / total * 100, 2) if total else 0.0,
        "trend": percent_change(total, previous_total),
        "driver_attribution_rate": round(attributed / total * 100, 2) if total else 0.0,
    }


def compliance_metrics(
    events: Iterable[Any],
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
) -> ComplianceMetrics:
    """
    Distraction and fatigue totals for [start, end], with the trend measured
    against the immediately preceding period of equal length.
    """
    now = now or end
    events = list(events)
    previous_start = start - (end - start)

    current = [e for e in events if _in_range(e, start, end)]
    previous = [e for e in events if _in_range(e, previous_start, start) and get_field(e, "occurred_at") != start]

    distraction = [e for e in current if is_distraction(e)]
    fatigue = [e for e in current if is_fatigue(e)]

    cutoff = now - timedelta(hours=24)
    fatigue_stats = _category(fatigue, sum(1 for e in previous if is_fatigue(e)))
    fatigue_stats["last_24h"] = sum(1 for e in fatigue if get_field(e, "occurred_at") >= cutoff)

    return ComplianceMetrics(
        distraction=CategoryCompliance(**_category(distraction, sum(1 for e in previous if is_distraction(e)))),
        fatigue=FatigueCompliance(**fatigue_stats),
    )


def monthly_trends(events: Iterable[Any], category: str = "fatigue") -> List[MonthlyTrend]:
    """Events per calendar month (YYYY-MM), oldest first."""
    matches = is_fatigue if category == "fatigue" else is_distraction
    buckets = OrderedDict()
    for event in sorted(events, key=lambda e: get_field(e, "occurred_at")):
        if not matches(event):
            continue
        key = get_field(event, "occurred_at").strftime("%Y-%m")
        row = buckets.setdefault(key, {"total": 0, "verified": 0})
        row["total"] += 1
        if is_verified(event):
            row["verified"] += 1
    return [MonthlyTrend(month=month, **row) for month, row in buckets.items()]


def fatigue_trend(events: Iterable[Any], now: datetime, tolerance_pct: Optional[float] = None) -> FatigueTrend:
    """Fatigue events in the last 7 days compared with the 7 days before."""
    tolerance = settings.fatigue_trend_tolerance_pct if tolerance_pct is None else tolerance_pct
    week_ago = now - timedelta(days=7)
    fortnight_ago = now - timedelta(days=14)

    current = previous = 0
    for event in events:
        if not is_fatigue(event):
            continue
        occurred = get_field(event, "occurred_at")
        if week_ago <= occurred <= now:
            current += 1
        elif fortnight_ago <= occurred < week_ago:
            previous += 1

    change = percent_change(current, previous)
    if change > tolerance:
        direction = "up"
    elif change < -tolerance:
        direction = "down"
    else:
        direction = "stable"
    return FatigueTrend(current=current, previous=previous, change=change, change_direction=direction)


def critical_fatigue_events(events: Iterable[Any], now: datetime, limit: Optional[int] = None) -> List[CriticalFatigueEvent]:
    """
    Fatigue events ordered for triage: the last 24 hours first, then by
    severity (Critical, High, Medium, Low), then newest first.
    """
    cutoff = now - timedelta(hours=24)
    rows = [
        CriticalFatigueEvent(
            id=get_field(e, "id"),
            vehicle_registration=get_field(e, "vehicle_registration"),
            occurred_at=get_field(e, "occurred_at"),
            event_type=get_field(e, "event_type"),
            severity=get_field(e, "severity"),
            verified=is_verified(e),
            fleet=get_field(e, "fleet"),
            driver_name=get_field(e, "driver_name"),
            is_recent=get_field(e, "occurred_at") >= cutoff,
        )
        for e in events
        if is_fatigue(e)
    ]
    rows.sort(key=lambda r: r.occurred_at, reverse=True)
    rows.sort(key=lambda r: (not r.is_recent, SEVERITY_ORDER.get(r.severity, len(SEVERITY_ORDER))))
    return rows[:limit] if limit else rows
