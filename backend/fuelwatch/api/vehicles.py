from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from fuelwatch.api.common import filter_spec, report_cache
from fuelwatch.config import settings
from fuelwatch.database import get_db
from fuelwatch.models import Vehicle
from fuelwatch.schemas import FilterSpec, ListResult, VehicleCreate, VehicleUpdate, VehicleResponse
from fuelwatch.services.presentation import apply_filter_spec
from fuelwatch.services.reconciliation import MappingService, normalize_registration

router = APIRouter()

VEHICLE_SEARCH_FIELDS = ("registration", "fleet", "depot", "make", "model")


def _validate_fleet(fleet: Optional[str]) -> None:
    if fleet is not None and fleet not in settings.fleets:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown fleet '{fleet}'. Expected one of: {', '.join(settings.fleets)}",
        )


def _get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


def _ensure_unique_registration(db: Session, registration: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Vehicle).filter(Vehicle.registration == registration)
    if exclude_id is not None:
        query = query.filter(Vehicle.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail=f"Vehicle {registration} already exists")


@router.get("", response_model=ListResult)
async def list_vehicles(
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """List vehicles. The customer filter selects a fleet."""
    vehicles = [VehicleResponse.model_validate(v) for v in db.query(Vehicle).order_by(Vehicle.registration).all()]
    return apply_filter_spec(
        vehicles,
        spec,
        search_fields=VEHICLE_SEARCH_FIELDS,
        customer_field="fleet",
        serialize=lambda v: v.model_dump(mode="json"),
    )


@router.post("", response_model=VehicleResponse)
async def create_vehicle(vehicle: VehicleCreate, db: Session = Depends(get_db)):
    """Create a vehicle in the master list."""
    _validate_fleet(vehicle.fleet)
    registration = normalize_registration(vehicle.registration)
    if not registration:
        raise HTTPException(status_code=400, detail="Registration is required")
    _ensure_unique_registration(db, registration)

    db_vehicle = Vehicle(**{**vehicle.model_dump(), "registration": registration})
    db.add(db_vehicle)
    db.commit()
    db.refresh(db_vehicle)
    report_cache.invalidate("vehicle.create")
    return db_vehicle


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    """Get a specific vehicle."""
    return _get_vehicle(db, vehicle_id)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int,
    vehicle_update: VehicleUpdate,
    db: Session = Depends(get_db)
):
    """Update a vehicle. Its mappings pick up any fleet or registration change."""
    vehicle = _get_vehicle(db, vehicle_id)

    update_data = vehicle_update.model_dump(exclude_unset=True)
    if "fleet" in update_data:
        if update_data["fleet"] is None:
            raise HTTPException(status_code=400, detail="Fleet cannot be cleared")
        _validate_fleet(update_data["fleet"])
    if "registration" in update_data:
        registration = normalize_registration(update_data["registration"])
        if not registration:
            raise HTTPException(status_code=400, detail="Registration cannot be empty")
        _ensure_unique_registration(db, registration, exclude_id=vehicle.id)
        update_data["registration"] = registration

    for field, value in update_data.items():
        setattr(vehicle, field, value)

    MappingService(db).refresh_for_vehicle(vehicle)
    db.commit()
    db.refresh(vehicle)
    report_cache.invalidate("vehicle.update")
    return vehicle


@router.delete("/{vehicle_id}")
async def delete_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    """Delete a vehicle and its device mappings."""
    vehicle = _get_vehicle(db, vehicle_id)
    db.delete(vehicle)
    db.commit()
    report_cache.invalidate("vehicle.delete")
    return {"message": "Vehicle deleted"}
