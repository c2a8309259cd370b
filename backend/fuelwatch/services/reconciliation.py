"""
Master-data reconciliation between the vehicle master, the device mapping
tables and the event/trip data of the external systems.

The module-level functions are pure and operate on any record shape readable by
get_field. ReconciliationService and MappingService apply them to the database.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging
import time

from fastapi import HTTPException
from sqlalchemy.orm import Session

from fuelwatch.models import DeviceMapping, ExternalSystem, FleetEvent, SyncLog, SyncStatus, Vehicle
from fuelwatch.schemas.mapping import MappingCreate, MappingUpdate
from fuelwatch.schemas.reconciliation import FleetMismatch, OrphanedRecord, SyncResult, SystemCoverage
from fuelwatch.services.presentation import get_field

logger = logging.getLogger(__name__)

SYSTEM_LABELS = {
    ExternalSystem.LYTX.value: "LYTX Safety",
    ExternalSystem.GUARDIAN.value: "Guardian Events",
    ExternalSystem.MTDATA.value: "MtData Trips",
}


def normalize_registration(value: Optional[str]) -> str:
    """Canonical registration: whitespace removed, upper case."""
    if not value:
        return ""
    return "".join(str(value).split()).upper()


def _identifier_set(mappings: Iterable[Any]) -> Set[str]:
    ids = set()
    for m in mappings:
        ext = m if isinstance(m, str) else get_field(m, "external_id")
        if ext:
            ids.add(ext)
    return ids


def find_orphans(events: Iterable[Any], mappings: Iterable[Any]) -> List[OrphanedRecord]:
    """
    Every distinct external identifier in events with no mapping, with its event
    count and first/last occurrence. Linear in events + mappings.
    """
    mapped = _identifier_set(mappings)
    stats: Dict[str, dict] = {}
    for event in events:
        ext = get_field(event, "external_id")
        if not ext or ext in mapped:
            continue
        row = stats.get(ext)
        if row is None:
            row = stats[ext] = {"count": 0, "first": None, "last": None, "fleets": set(), "drivers": set()}
        row["count"] += 1
        occurred = get_field(event, "occurred_at")
        if occurred is not None:
            if row["first"] is None or occurred < row["first"]:
                row["first"] = occurred
            if row["last"] is None or occurred > row["last"]:
                row["last"] = occurred
        fleet = get_field(event, "fleet")
        if fleet:
            row["fleets"].add(fleet)
        driver = get_field(event, "driver_name")
        if driver:
            row["drivers"].add(driver)

    orphans = [
        OrphanedRecord(
            external_id=ext,
            event_count=row["count"],
            first_seen=row["first"],
            last_seen=row["last"],
            current_fleets=sorted(row["fleets"]),
            unique_drivers=len(row["drivers"]),
        )
        for ext, row in stats.items()
    ]
    orphans.sort(key=lambda o: (-o.event_count, o.external_id))
    return orphans


def find_fleet_mismatches(vehicles: Iterable[Any], events: Iterable[Any]) -> List[FleetMismatch]:
    """One row per (registration, event fleet) pair where the event fleet differs from the vehicle's."""
    canonical = {}
    for v in vehicles:
        reg = normalize_registration(get_field(v, "registration"))
        if reg:
            canonical[reg] = get_field(v, "fleet")

    groups: Dict[Tuple[str, Optional[str]], dict] = {}
    for event in events:
        reg = normalize_registration(get_field(event, "vehicle_registration"))
        if reg not in canonical:
            continue
        event_fleet = get_field(event, "fleet")
        if event_fleet == canonical[reg]:
            continue
        row = groups.setdefault((reg, event_fleet), {"count": 0, "first": None, "last": None})
        row["count"] += 1
        occurred = get_field(event, "occurred_at")
        if occurred is not None:
            if row["first"] is None or occurred < row["first"]:
                row["first"] = occurred
            if row["last"] is None or occurred > row["last"]:
                row["last"] = occurred

    mismatches = [
        FleetMismatch(
            vehicle_registration=reg,
            vehicle_fleet=canonical[reg],
            event_fleet=event_fleet,
            event_count=row["count"],
            first_mismatch=row["first"],
            last_mismatch=row["last"],
        )
        for (reg, event_fleet), row in groups.items()
    ]
    mismatches.sort(key=lambda m: (-m.event_count, m.vehicle_registration, m.event_fleet or ""))
    return mismatches


def canonical_assignments(
    events: Iterable[Any],
    mappings: Iterable[Any],
    vehicles: Iterable[Any],
) -> Dict[int, Tuple[str, Optional[str]]]:
    """
    Canonical (fleet, registration) per event id. A mapping on the event's
    external identifier wins; otherwise the vehicle master is matched on
    registration and the event keeps its registration.
    """
    by_external = {
        get_field(m, "external_id"): (get_field(m, "fleet"), get_field(m, "vehicle_registration"))
        for m in mappings
    }
    by_registration = {
        normalize_registration(get_field(v, "registration")): get_field(v, "fleet")
        for v in vehicles
    }
    result = {}
    for event in events:
        ext = get_field(event, "external_id")
        if ext and ext in by_external:
            result[get_field(event, "id")] = by_external[ext]
            continue
        reg = normalize_registration(get_field(event, "vehicle_registration"))
        if reg and reg in by_registration:
            result[get_field(event, "id")] = (by_registration[reg], get_field(event, "vehicle_registration"))
    return result


def plan_fleet_sync(
    events: Sequence[Any],
    mappings: Iterable[Any],
    vehicles: Iterable[Any],
) -> List[Tuple[Any, str, Optional[str]]]:
    """(event, fleet, registration) for every event whose attribution is out of date."""
    canonical = canonical_assignments(events, mappings, vehicles)
    changes = []
    for event in events:
        target = canonical.get(get_field(event, "id"))
        if target is None:
            continue
        fleet, registration = target
        if get_field(event, "fleet") != fleet or get_field(event, "vehicle_registration") != registration:
            changes.append((event, fleet, registration))
    return changes


def count_fleet_mismatches(events: Sequence[Any], mappings: Iterable[Any], vehicles: Iterable[Any]) -> int:
    canonical = canonical_assignments(events, mappings, vehicles)
    return sum(
        1 for e in events
        if get_field(e, "id") in canonical and get_field(e, "fleet") != canonical[get_field(e, "id")][0]
    )


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db

    def _events(self, system: Optional[str] = None) -> List[FleetEvent]:
        query = self.db.query(FleetEvent)
        if system:
            query = query.filter(FleetEvent.system == system)
        return query.all()

    def _mappings(self, system: Optional[str] = None) -> List[DeviceMapping]:
        query = self.db.query(DeviceMapping)
        if system:
            query = query.filter(DeviceMapping.system == system)
        return query.all()

    def orphans(self, system: str) -> List[OrphanedRecord]:
        return find_orphans(self._events(system), self._mappings(system))

    def mismatches(self, system: Optional[str] = None) -> List[FleetMismatch]:
        return find_fleet_mismatches(self.db.query(Vehicle).all(), self._events(system))

    def sync_fleet_assignments(self, system: str) -> SyncResult:
        """
        Overwrite event fleet/registration from the mapping table (falling back
        to the vehicle master). Idempotent: a second run changes nothing.
        """
        started = time.monotonic()
        log = SyncLog(sync_type=f"{system}_events", status=SyncStatus.RUNNING.value)
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)

        try:
            events = self._events(system)
            mappings = self._mappings(system)
            vehicles = self.db.query(Vehicle).all()

            before = count_fleet_mismatches(events, mappings, vehicles)
            changes = plan_fleet_sync(events, mappings, vehicles)
            for event, fleet, registration in changes:
                event.fleet = fleet
                event.vehicle_registration = registration
            self.db.flush()
            after = count_fleet_mismatches(events, mappings, vehicles)

            elapsed_ms = int((time.monotonic() - started) * 1000)
            log.status = SyncStatus.COMPLETED.value
            log.completed_at = datetime.utcnow()
            log.records_updated = len(changes)
            log.mismatches_before = before
            log.mismatches_after = after
            log.execution_time_ms = elapsed_ms
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.status = SyncStatus.FAILED.value
            log.completed_at = datetime.utcnow()
            log.error_message = str(e)
            self.db.commit()
            logger.error(f"Fleet sync failed for {system}: {e}")
            raise

        logger.info(
            f"Fleet sync {system}: updated={len(changes)} mismatches {before} -> {after} ({elapsed_ms}ms)"
        )
        return SyncResult(
            system=SYSTEM_LABELS.get(system, system),
            updated_count=len(changes),
            mismatch_count_before=before,
            mismatch_count_after=after,
            execution_time_ms=elapsed_ms,
        )

    def sync_all(self) -> List[SyncResult]:
        return [self.sync_fleet_assignments(system.value) for system in ExternalSystem]

    def mapping_quality(self) -> List[SystemCoverage]:
        report = []
        for system in ExternalSystem:
            events = self._events(system.value)
            mapped = _identifier_set(self._mappings(system.value))
            identifiers = {e.external_id for e in events if e.external_id}
            mapped_events = sum(1 for e in events if e.external_id in mapped)
            mapped_ids = len(identifiers & mapped)
            report.append(SystemCoverage(
                system=system.value,
                total_identifiers=len(identifiers),
                mapped_identifiers=mapped_ids,
                total_events=len(events),
                mapped_events=mapped_events,
                identifier_coverage_pct=round(mapped_ids / len(identifiers) * 100, 2) if identifiers else None,
                event_coverage_pct=round(mapped_events / len(events) * 100, 2) if events else None,
            ))
        return report

    def sync_logs(self, limit: int = 50) -> List[SyncLog]:
        return self.db.query(SyncLog).order_by(SyncLog.id.desc()).limit(limit).all()


class MappingService:
    """Mapping CRUD. fleet and registration always come from the vehicle master."""

    def __init__(self, db: Session):
        self.db = db

    def _vehicle_or_400(self, vehicle_id: int) -> Vehicle:
        vehicle = self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if not vehicle:
            raise HTTPException(status_code=400, detail=f"Vehicle {vehicle_id} not found")
        return vehicle

    def _ensure_unique(self, system: str, external_id: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(DeviceMapping).filter(
            DeviceMapping.system == system,
            DeviceMapping.external_id == external_id,
        )
        if exclude_id is not None:
            query = query.filter(DeviceMapping.id != exclude_id)
        if query.first():
            raise HTTPException(status_code=400, detail=f"{system} identifier '{external_id}' is already mapped")

    def get(self, mapping_id: int) -> DeviceMapping:
        mapping = self.db.query(DeviceMapping).filter(DeviceMapping.id == mapping_id).first()
        if not mapping:
            raise HTTPException(status_code=404, detail="Mapping not found")
        return mapping

    def list(self, system: Optional[str] = None) -> List[DeviceMapping]:
        query = self.db.query(DeviceMapping)
        if system:
            query = query.filter(DeviceMapping.system == system)
        return query.order_by(DeviceMapping.system, DeviceMapping.external_id).all()

    def create(self, data: MappingCreate) -> DeviceMapping:
        system = data.system.value
        external_id = data.external_id.strip()
        vehicle = self._vehicle_or_400(data.vehicle_id)
        self._ensure_unique(system, external_id)

        mapping = DeviceMapping(
            system=system,
            external_id=external_id,
            vehicle_id=vehicle.id,
            vehicle_registration=vehicle.registration,
            fleet=vehicle.fleet,
            mapping_source=data.mapping_source.value,
            confidence_score=data.confidence_score,
            notes=data.notes,
        )
        self.db.add(mapping)
        self.db.commit()
        self.db.refresh(mapping)
        logger.info(f"Mapped {system} '{external_id}' to {vehicle.registration} ({vehicle.fleet})")
        return mapping

    def update(self, mapping_id: int, data: MappingUpdate) -> DeviceMapping:
        mapping = self.get(mapping_id)
        update_data = data.model_dump(exclude_unset=True)

        vehicle_id = update_data.get("vehicle_id") or mapping.vehicle_id
        vehicle = self._vehicle_or_400(vehicle_id)

        if update_data.get("external_id"):
            external_id = update_data["external_id"].strip()
            self._ensure_unique(mapping.system, external_id, exclude_id=mapping.id)
            mapping.external_id = external_id
        if "confidence_score" in update_data and update_data["confidence_score"] is not None:
            mapping.confidence_score = update_data["confidence_score"]
        if "notes" in update_data:
            mapping.notes = update_data["notes"]

        if vehicle.id != mapping.vehicle_id:
            mapping.verified = False
            mapping.verified_at = None
        mapping.vehicle_id = vehicle.id
        mapping.vehicle_registration = vehicle.registration
        mapping.fleet = vehicle.fleet

        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def verify(self, mapping_id: int) -> DeviceMapping:
        mapping = self.get(mapping_id)
        mapping.verified = True
        mapping.verified_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def delete(self, mapping_id: int) -> None:
        mapping = self.get(mapping_id)
        self.db.delete(mapping)
        self.db.commit()
        logger.info(f"Deleted {mapping.system} mapping '{mapping.external_id}'")

    def refresh_for_vehicle(self, vehicle: Vehicle) -> int:
        """Re-copy fleet and registration onto a vehicle's mappings after it changes."""
        updated = 0
        for mapping in self.db.query(DeviceMapping).filter(DeviceMapping.vehicle_id == vehicle.id).all():
            if mapping.fleet != vehicle.fleet or mapping.vehicle_registration != vehicle.registration:
                mapping.fleet = vehicle.fleet
                mapping.vehicle_registration = vehicle.registration
                updated += 1
        return updated
