from fuelwatch.models.tank import Tank
from fuelwatch.models.dip_reading import DipReading
from fuelwatch.models.vehicle import Vehicle
from fuelwatch.models.device_mapping import DeviceMapping, ExternalSystem, MappingSource
from fuelwatch.models.fleet_event import FleetEvent
from fuelwatch.models.sync_log import SyncLog, SyncStatus

__all__ = [
    "Tank",
    "DipReading",
    "Vehicle",
    "DeviceMapping",
    "ExternalSystem",
    "MappingSource",
    "FleetEvent",
    "SyncLog",
    "SyncStatus",
]
