from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class OrphanedRecord(BaseModel):
    """An external identifier seen in event data with no mapping to a vehicle."""
    external_id: str
    event_count: int
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    current_fleets: List[str] = []
    unique_drivers: int = 0


class FleetMismatch(BaseModel):
    vehicle_registration: str
    vehicle_fleet: str
    event_fleet: Optional[str] = None
    event_count: int
    first_mismatch: Optional[datetime] = None
    last_mismatch: Optional[datetime] = None


class SyncResult(BaseModel):
    system: str
    updated_count: int
    mismatch_count_before: int
    mismatch_count_after: int
    execution_time_ms: int


class SystemCoverage(BaseModel):
    system: str
    total_identifiers: int
    mapped_identifiers: int
    total_events: int
    mapped_events: int
    identifier_coverage_pct: Optional[float] = None
    event_coverage_pct: Optional[float] = None


class SyncLogResponse(BaseModel):
    id: int
    sync_type: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    records_updated: Optional[int] = None
    mismatches_before: Optional[int] = None
    mismatches_after: Optional[int] = None
    execution_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
