from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from fuelwatch.api.common import filter_spec
from fuelwatch.database import get_db
from fuelwatch.models import DipReading, Tank
from fuelwatch.schemas import FilterSpec, ListResult
from fuelwatch.services.presentation import apply_filter_spec
from fuelwatch.services.tank_service import build_dip_history

router = APIRouter()

HISTORY_SEARCH_FIELDS = ("tank_name", "customer_name", "group_name", "unit_number", "tank_number", "recorded_by", "notes")


@router.get("", response_model=ListResult)
async def get_dip_history(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    group_name: Optional[str] = Query(None),
    group_by: Optional[str] = Query(None, description="'customer' to group by customer"),
    limit: int = Query(1000, ge=1, le=10000),
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """Dip readings across all tanks, newest first unless another sort is given."""
    query = db.query(DipReading)
    if start_date:
        query = query.filter(DipReading.timestamp >= start_date)
    if end_date:
        query = query.filter(DipReading.timestamp <= end_date)
    if group_name:
        query = query.join(Tank, Tank.id == DipReading.tank_id).filter(Tank.group_name == group_name)
    readings = query.order_by(DipReading.timestamp.desc()).limit(limit).all()

    tank_ids = {r.tank_id for r in readings}
    tanks = {t.id: t for t in db.query(Tank).filter(Tank.id.in_(tank_ids)).all()} if tank_ids else {}

    if not spec.sort_key:
        spec = spec.model_copy(update={"sort_key": "timestamp", "sort_direction": "desc"})
    return apply_filter_spec(
        build_dip_history(readings, tanks),
        spec,
        search_fields=HISTORY_SEARCH_FIELDS,
        group_by_customer_name=group_by == "customer",
        secondary_keys=("tank_name", "timestamp"),
        serialize=lambda row: row.model_dump(mode="json"),
    )
