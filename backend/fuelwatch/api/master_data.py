from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from fuelwatch.api.common import filter_spec, report_cache
from fuelwatch.database import get_db
from fuelwatch.models import ExternalSystem, FleetEvent
from fuelwatch.schemas import (
    FilterSpec, ListResult,
    MappingCreate, MappingUpdate, MappingResponse,
    FleetEventCreate, FleetEventResponse,
    OrphanedRecord, FleetMismatch, SyncResult, SystemCoverage, SyncLogResponse,
)
from fuelwatch.services.presentation import apply_filter_spec
from fuelwatch.services.reconciliation import MappingService, ReconciliationService, normalize_registration

router = APIRouter()

MAPPING_SEARCH_FIELDS = ("external_id", "vehicle_registration", "fleet", "notes")


# --- Device mappings ---

@router.get("/mappings", response_model=ListResult)
async def list_mappings(
    system: Optional[ExternalSystem] = Query(None),
    spec: FilterSpec = Depends(filter_spec),
    db: Session = Depends(get_db)
):
    """List device mappings. The customer filter selects a fleet."""
    mappings = [
        MappingResponse.model_validate(m)
        for m in MappingService(db).list(system.value if system else None)
    ]
    return apply_filter_spec(
        mappings,
        spec,
        search_fields=MAPPING_SEARCH_FIELDS,
        customer_field="fleet",
        serialize=lambda m: m.model_dump(mode="json"),
    )


@router.post("/mappings", response_model=MappingResponse)
async def create_mapping(mapping: MappingCreate, db: Session = Depends(get_db)):
    """Map an external identifier to a vehicle. Fleet and registration come from the vehicle."""
    created = MappingService(db).create(mapping)
    report_cache.invalidate("mapping.create")
    return created


@router.get("/mappings/{mapping_id}", response_model=MappingResponse)
async def get_mapping(mapping_id: int, db: Session = Depends(get_db)):
    return MappingService(db).get(mapping_id)


@router.put("/mappings/{mapping_id}", response_model=MappingResponse)
async def update_mapping(mapping_id: int, mapping_update: MappingUpdate, db: Session = Depends(get_db)):
    updated = MappingService(db).update(mapping_id, mapping_update)
    report_cache.invalidate("mapping.update")
    return updated


@router.post("/mappings/{mapping_id}/verify", response_model=MappingResponse)
async def verify_mapping(mapping_id: int, db: Session = Depends(get_db)):
    """Mark a mapping as checked by a person."""
    verified = MappingService(db).verify(mapping_id)
    report_cache.invalidate("mapping.verify")
    return verified


@router.delete("/mappings/{mapping_id}")
async def delete_mapping(mapping_id: int, db: Session = Depends(get_db)):
    MappingService(db).delete(mapping_id)
    report_cache.invalidate("mapping.delete")
    return {"message": "Mapping deleted"}


# --- External events ---

@router.post("/events", response_model=FleetEventResponse)
async def create_event(event: FleetEventCreate, db: Session = Depends(get_db)):
    """Record an event or trip received from an external system."""
    data = event.model_dump()
    if data.get("vehicle_registration"):
        data["vehicle_registration"] = normalize_registration(data["vehicle_registration"])
    db_event = FleetEvent(**data)
    db.add(db_event)
    db.commit()
    db.refresh(db_event)
    report_cache.invalidate("event.create")
    return db_event


# --- Reconciliation reports ---

@router.get("/orphans", response_model=List[OrphanedRecord])
async def get_orphans(
    system: ExternalSystem = Query(..., description="External system to check"),
    db: Session = Depends(get_db)
):
    """External identifiers seen in event data with no vehicle mapping."""
    return report_cache.get_or_compute(
        "orphans",
        {"system": system.value},
        lambda: ReconciliationService(db).orphans(system.value),
    )


@router.get("/mismatches", response_model=List[FleetMismatch])
async def get_mismatches(
    system: Optional[ExternalSystem] = Query(None),
    db: Session = Depends(get_db)
):
    """Events whose fleet disagrees with the vehicle master."""
    system_value = system.value if system else None
    return report_cache.get_or_compute(
        "mismatches",
        {"system": system_value},
        lambda: ReconciliationService(db).mismatches(system_value),
    )


@router.post("/sync", response_model=List[SyncResult])
async def sync_fleets(
    system: Optional[ExternalSystem] = Query(None, description="Sync one system, or all when omitted"),
    db: Session = Depends(get_db)
):
    """Re-attribute event fleets from the mapping table and vehicle master."""
    service = ReconciliationService(db)
    try:
        return [service.sync_fleet_assignments(system.value)] if system else service.sync_all()
    finally:
        # Systems synced before a failure are already committed
        report_cache.invalidate("fleet.sync")


@router.get("/quality", response_model=List[SystemCoverage])
async def get_mapping_quality(db: Session = Depends(get_db)):
    """Mapping coverage per external system."""
    return report_cache.get_or_compute("quality", None, lambda: ReconciliationService(db).mapping_quality())


@router.get("/sync-log", response_model=List[SyncLogResponse])
async def get_sync_log(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return ReconciliationService(db).sync_logs(limit)
