from fuelwatch.schemas.tank import (
    TankCreate, TankUpdate, TankResponse, TankSummary,
    DipReadingCreate, DipReadingResponse, DipHistoryRow,
)
from fuelwatch.schemas.vehicle import VehicleCreate, VehicleUpdate, VehicleResponse
from fuelwatch.schemas.mapping import MappingCreate, MappingUpdate, MappingResponse
from fuelwatch.schemas.event import FleetEventCreate, FleetEventResponse
from fuelwatch.schemas.analytics import ReadingPoint, TankProfile, RefuelEvent, FuelAnalytics
from fuelwatch.schemas.reconciliation import (
    OrphanedRecord, FleetMismatch, SyncResult, SystemCoverage, SyncLogResponse,
)
from fuelwatch.schemas.filters import FilterSpec, ListResult, CustomerGroup

__all__ = [
    "TankCreate", "TankUpdate", "TankResponse", "TankSummary",
    "DipReadingCreate", "DipReadingResponse", "DipHistoryRow",
    "VehicleCreate", "VehicleUpdate", "VehicleResponse",
    "MappingCreate", "MappingUpdate", "MappingResponse",
    "FleetEventCreate", "FleetEventResponse",
    "ReadingPoint", "TankProfile", "RefuelEvent", "FuelAnalytics",
    "OrphanedRecord", "FleetMismatch", "SyncResult", "SystemCoverage", "SyncLogResponse",
    "FilterSpec", "ListResult", "CustomerGroup",
]
