from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from fuelwatch.api.common import filter_spec
from fuelwatch.database import get_db
from fuelwatch.models import Tank
from fuelwatch.schemas import (
    TankCreate, TankUpdate, TankResponse,
    DipReadingCreate, DipReadingResponse,
    FilterSpec, ListResult, FuelAnalytics,
)
from fuelwatch.services.presentation import apply_filter_spec
from fuelwatch.services.tank_service import TankService

router = APIRouter()

TANK_SEARCH_FIELDS = ("name", "customer_name", "unit_number", "tank_number", "description", "location", "group_name")
READING_SEARCH_FIELDS = ("notes", "recorded_by")


def _dump(model) -> dict:
    return model.model_dump(mode="json")


@router.get("", response_model=ListResult)
async def list_tanks(
    group_by: Optional[str] = Query(None, description="'customer' to group by customer"),
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """List tanks with their latest level, filtered, sorted and optionally grouped."""
    summaries = TankService(db).list_summaries()
    return apply_filter_spec(
        summaries,
        spec,
        search_fields=TANK_SEARCH_FIELDS,
        group_by_customer_name=group_by == "customer",
        serialize=_dump,
    )


@router.post("", response_model=TankResponse)
async def create_tank(tank: TankCreate, db: Session = Depends(get_db)):
    """Create a new tank."""
    TankService.validate_levels(tank.capacity, tank.min_level)
    db_tank = Tank(**tank.model_dump())
    db.add(db_tank)
    db.commit()
    db.refresh(db_tank)
    return db_tank


@router.get("/{tank_id}")
async def get_tank(tank_id: int, db: Session = Depends(get_db)):
    """Get a tank with its latest level and zone."""
    service = TankService(db)
    return _dump(service.summarize(service.get_tank(tank_id)))


@router.put("/{tank_id}", response_model=TankResponse)
async def update_tank(
    tank_id: int,
    tank_update: TankUpdate,
    db: Session = Depends(get_db)
):
    """Update a tank."""
    service = TankService(db)
    tank = service.get_tank(tank_id)

    update_data = tank_update.model_dump(exclude_unset=True)
    service.validate_levels(
        update_data.get("capacity") or tank.capacity,
        update_data["min_level"] if update_data.get("min_level") is not None else tank.min_level,
    )
    for field, value in update_data.items():
        if value is None and field in ("name", "capacity", "min_level"):
            continue
        setattr(tank, field, value)

    db.commit()
    db.refresh(tank)
    return tank


@router.delete("/{tank_id}")
async def delete_tank(tank_id: int, db: Session = Depends(get_db)):
    """Delete a tank and its readings."""
    tank = TankService(db).get_tank(tank_id)
    db.delete(tank)
    db.commit()
    return {"message": "Tank deleted"}


@router.get("/{tank_id}/readings", response_model=ListResult)
async def get_tank_readings(
    tank_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """Dip readings for one tank in a date range, searchable over notes and operator."""
    service = TankService(db)
    service.get_tank(tank_id)
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be before end_date")

    readings = [DipReadingResponse.model_validate(r) for r in service.get_readings(tank_id, start_date, end_date)]
    if not spec.sort_key:
        spec = spec.model_copy(update={"sort_key": "timestamp"})
    return apply_filter_spec(readings, spec, search_fields=READING_SEARCH_FIELDS, serialize=_dump)


@router.post("/{tank_id}/readings", response_model=DipReadingResponse)
async def add_tank_reading(tank_id: int, reading: DipReadingCreate, db: Session = Depends(get_db)):
    """Record a single dip reading."""
    return TankService(db).add_reading(
        tank_id,
        reading.value,
        reading.timestamp,
        recorded_by=reading.recorded_by,
        notes=reading.notes,
    )


@router.post("/{tank_id}/upload")
async def upload_tank_readings(
    tank_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    """
    Upload dip readings as CSV.
    Expected columns: timestamp, value and optionally recorded_by, notes.
    Deduplicates on tank + timestamp.
    """
    content = await file.read()
    try:
        text = content.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded CSV")

    return TankService(db).process_readings_csv(text, tank_id)


@router.get("/{tank_id}/analytics", response_model=FuelAnalytics)
async def get_tank_analytics(
    tank_id: int,
    days: Optional[int] = Query(None, ge=1, description="Only analyse the last N days of readings"),
    db: Session = Depends(get_db)
):
    """Consumption, refuel, performance and seasonal analytics for a tank."""
    return TankService(db).analytics(tank_id, days)
