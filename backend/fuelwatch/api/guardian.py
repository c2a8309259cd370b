from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List, Literal, Optional

from fuelwatch.api.common import filter_spec
from fuelwatch.database import get_db
from fuelwatch.models import ExternalSystem, FleetEvent
from fuelwatch.schemas import FilterSpec, FleetEventResponse, ListResult
from fuelwatch.schemas.guardian import ComplianceMetrics, CriticalFatigueEvent, FatigueTrend, MonthlyTrend
from fuelwatch.services import guardian_analytics
from fuelwatch.services.presentation import apply_filter_spec

router = APIRouter()

EVENT_SEARCH_FIELDS = ("vehicle_registration", "driver_name", "event_type", "external_id", "fleet")


def _guardian_events(
    db: Session,
    fleet: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[FleetEvent]:
    query = db.query(FleetEvent).filter(FleetEvent.system == ExternalSystem.GUARDIAN.value)
    if fleet:
        query = query.filter(FleetEvent.fleet == fleet)
    if start:
        query = query.filter(FleetEvent.occurred_at >= start)
    if end:
        query = query.filter(FleetEvent.occurred_at <= end)
    return query.order_by(FleetEvent.occurred_at.desc()).all()


@router.get("/events", response_model=ListResult)
async def list_guardian_events(
    fleet: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """Guardian events. The status filter selects a severity."""
    events = [FleetEventResponse.model_validate(e) for e in _guardian_events(db, fleet, start_date, end_date)]
    return apply_filter_spec(
        events,
        spec,
        search_fields=EVENT_SEARCH_FIELDS,
        status_field="severity",
        customer_field="fleet",
        serialize=lambda e: e.model_dump(mode="json"),
    )


@router.get("/compliance", response_model=ComplianceMetrics)
async def get_compliance(
    fleet: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db)
):
    """Distraction and fatigue compliance, defaulting to the last 30 days."""
    now = datetime.utcnow()
    end = end_date or now
    start = start_date or end - timedelta(days=30)
    if start >= end:
        raise HTTPException(status_code=400, detail="start_date must be before end_date")
    # The trend needs the preceding period as well
    events = _guardian_events(db, fleet, start - (end - start), end)
    return guardian_analytics.compliance_metrics(events, start, end, now=min(now, end))


@router.get("/monthly-trends", response_model=List[MonthlyTrend])
async def get_monthly_trends(
    category: Literal["distraction", "fatigue"] = Query("fatigue"),
    fleet: Optional[str] = Query(None),
    months: int = Query(12, ge=1, le=60),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    start = (now.replace(day=1) - timedelta(days=31 * (months - 1))).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return guardian_analytics.monthly_trends(_guardian_events(db, fleet, start, now), category)


@router.get("/fatigue-trend", response_model=FatigueTrend)
async def get_fatigue_trend(fleet: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Fatigue events in the last 7 days against the 7 days before."""
    now = datetime.utcnow()
    return guardian_analytics.fatigue_trend(_guardian_events(db, fleet, now - timedelta(days=14), now), now)


@router.get("/critical-fatigue", response_model=List[CriticalFatigueEvent])
async def get_critical_fatigue(
    fleet: Optional[str] = Query(None),
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    events = _guardian_events(db, fleet, now - timedelta(days=days), now)
    return guardian_analytics.critical_fatigue_events(events, now, limit)
