from datetime import datetime

import pytest

from fuelwatch.models import FleetEvent, SyncLog
from fuelwatch.services import reconciliation
from fuelwatch.services.reconciliation import (
    ReconciliationService,
    find_fleet_mismatches,
    find_orphans,
    normalize_registration,
    plan_fleet_sync,
)


def event(id, external_id, fleet=None, registration=None, day=1, driver=None):
    return {
        "id": id,
        "external_id": external_id,
        "fleet": fleet,
        "vehicle_registration": registration,
        "occurred_at": datetime(2025, 3, day, 9, 0),
        "driver_name": driver,
    }


@pytest.mark.parametrize("raw, expected", [
    ("1abc 123", "1ABC123"),
    ("  1ABC\t123 ", "1ABC123"),
    (None, ""),
])
def test_normalize_registration(raw, expected):
    assert normalize_registration(raw) == expected


@pytest.mark.parametrize("event_ids, mapped", [
    (["A", "B", "C", "A"], ["B"]),
    (["A"], []),
    (["A", "B"], ["A", "B", "Z"]),
    ([], ["A"]),
])
def test_orphans_are_set_difference(event_ids, mapped):
    events = [event(i, ext, day=(i % 28) + 1) for i, ext in enumerate(event_ids)]

    orphans = find_orphans(events, [{"external_id": m} for m in mapped])

    assert {o.external_id for o in orphans} == set(event_ids) - set(mapped)
    assert all(o.event_count >= 1 for o in orphans)


def test_orphan_statistics():
    events = [
        event(1, "G-1", fleet="Stevemacs", day=3, driver="Sam"),
        event(2, "G-1", fleet="Great Southern Fuels", day=1, driver="Alex"),
        event(3, "G-1", fleet="Stevemacs", day=7, driver="Sam"),
    ]

    [orphan] = find_orphans(events, ["G-2"])

    assert orphan.event_count == 3
    assert orphan.first_seen == datetime(2025, 3, 1, 9, 0)
    assert orphan.last_seen == datetime(2025, 3, 7, 9, 0)
    assert orphan.current_fleets == ["Great Southern Fuels", "Stevemacs"]
    assert orphan.unique_drivers == 2


def test_fleet_mismatches_group_by_registration_and_fleet():
    vehicles = [{"registration": "1ABC123", "fleet": "Stevemacs"}]
    events = [
        event(1, "G-1", fleet="Great Southern Fuels", registration="1abc 123"),
        event(2, "G-1", fleet="Great Southern Fuels", registration="1ABC123", day=4),
        event(3, "G-1", fleet="Stevemacs", registration="1ABC123"),
        event(4, "G-1", fleet=None, registration="1ABC123"),
        event(5, "G-9", fleet="Great Southern Fuels", registration="UNKNOWN"),
    ]

    mismatches = find_fleet_mismatches(vehicles, events)

    assert [(m.event_fleet, m.event_count) for m in mismatches] == [("Great Southern Fuels", 2), (None, 1)]
    assert mismatches[0].vehicle_fleet == "Stevemacs"
    assert mismatches[0].last_mismatch == datetime(2025, 3, 4, 9, 0)


def test_plan_prefers_mapping_over_registration():
    mappings = [{"external_id": "G-1", "fleet": "Stevemacs", "vehicle_registration": "1ABC123"}]
    vehicles = [{"registration": "2XYZ999", "fleet": "Great Southern Fuels"}]
    events = [
        event(1, "G-1", fleet="Great Southern Fuels", registration="2XYZ999"),
        event(2, "G-2", fleet="Stevemacs", registration="2XYZ999"),
        event(3, "G-1", fleet="Stevemacs", registration="1ABC123"),
    ]

    changes = plan_fleet_sync(events, mappings, vehicles)

    assert [(e["id"], fleet, reg) for e, fleet, reg in changes] == [
        (1, "Stevemacs", "1ABC123"),
        (2, "Great Southern Fuels", "2XYZ999"),
    ]


def test_sync_is_idempotent(db, make_vehicle, make_mapping, make_event):
    truck = make_vehicle("1ABC123", "Stevemacs")
    make_mapping(truck, "G-100")
    for day in range(1, 4):
        make_event(external_id="G-100", fleet="Great Southern Fuels", vehicle_registration="OLDREG",
                   occurred_at=datetime(2025, 3, day))
    make_event(external_id="G-100", fleet="Stevemacs", vehicle_registration="1ABC123")

    service = ReconciliationService(db)
    first = service.sync_fleet_assignments("guardian")

    assert first.updated_count == 3
    assert first.mismatch_count_before == 3
    assert first.mismatch_count_after == 0
    assert {e.fleet for e in db.query(FleetEvent).all()} == {"Stevemacs"}
    assert service.mismatches("guardian") == []

    second = service.sync_fleet_assignments("guardian")
    assert second.updated_count == 0
    assert second.mismatch_count_before == 0

    logs = db.query(SyncLog).order_by(SyncLog.id).all()
    assert [log.status for log in logs] == ["completed", "completed"]
    assert logs[0].records_updated == 3


def test_failed_sync_is_logged_and_rolled_back(db, monkeypatch, make_vehicle, make_mapping, make_event):
    truck = make_vehicle("1ABC123", "Stevemacs")
    make_mapping(truck, "G-100")
    make_event(external_id="G-100", fleet="Great Southern Fuels", vehicle_registration="OLDREG")

    real_count = reconciliation.count_fleet_mismatches
    calls = []

    def count_then_fail(events, mappings, vehicles):
        calls.append(len(events))
        # Second count runs after the event updates have been flushed
        if len(calls) == 2:
            raise RuntimeError("connection lost")
        return real_count(events, mappings, vehicles)

    monkeypatch.setattr(reconciliation, "count_fleet_mismatches", count_then_fail)

    with pytest.raises(RuntimeError, match="connection lost"):
        ReconciliationService(db).sync_fleet_assignments("guardian")

    events = db.query(FleetEvent).all()
    assert [(e.fleet, e.vehicle_registration) for e in events] == [("Great Southern Fuels", "OLDREG")]

    log = db.query(SyncLog).one()
    assert log.status == "failed"
    assert log.error_message == "connection lost"
    assert log.completed_at is not None


def test_sync_all_covers_every_system(db):
    results = ReconciliationService(db).sync_all()

    assert [r.system for r in results] == ["LYTX Safety", "Guardian Events", "MtData Trips"]
    assert all(r.updated_count == 0 for r in results)


def test_mapping_quality(db, make_vehicle, make_mapping, make_event):
    truck = make_vehicle()
    make_mapping(truck, "G-1")
    make_event(external_id="G-1")
    make_event(external_id="G-1")
    make_event(external_id="G-2")
    make_event(external_id="G-3")

    quality = {q.system: q for q in ReconciliationService(db).mapping_quality()}

    guardian = quality["guardian"]
    assert guardian.total_identifiers == 3
    assert guardian.mapped_identifiers == 1
    assert guardian.mapped_events == 2
    assert guardian.event_coverage_pct == 50.0
    assert quality["lytx"].identifier_coverage_pct is None
