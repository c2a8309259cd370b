from fuelwatch.api.common import report_cache
from fuelwatch.models import FleetEvent, SyncLog
from fuelwatch.services import reconciliation
from fuelwatch.tasks import fleet_sync


def test_scheduled_sync_continues_after_a_system_fails(db, monkeypatch, make_vehicle, make_mapping, make_event):
    truck = make_vehicle("1ABC123", "Stevemacs")
    make_mapping(truck, "QM1", system="lytx")
    make_mapping(truck, "G-100", system="guardian")
    make_event(system="lytx", external_id="QM1", fleet="Great Southern Fuels")
    make_event(system="guardian", external_id="G-100", fleet="Great Southern Fuels")

    real_plan = reconciliation.plan_fleet_sync

    def plan_failing_for_lytx(events, mappings, vehicles):
        if any(e.system == "lytx" for e in events):
            raise RuntimeError("LYTX feed unavailable")
        return real_plan(events, mappings, vehicles)

    monkeypatch.setattr(reconciliation, "plan_fleet_sync", plan_failing_for_lytx)
    monkeypatch.setattr(fleet_sync, "SessionLocal", lambda: db)
    report_cache.set("mismatches", {"system": None}, ["stale"])

    fleet_sync.sync_fleet_assignments_job()

    fleets = {e.system: e.fleet for e in db.query(FleetEvent).all()}
    assert fleets == {"lytx": "Great Southern Fuels", "guardian": "Stevemacs"}

    statuses = {log.sync_type: log.status for log in db.query(SyncLog).all()}
    assert statuses == {
        "lytx_events": "failed",
        "guardian_events": "completed",
        "mtdata_events": "completed",
    }
    assert not report_cache.contains("mismatches", {"system": None})
    report_cache.clear()
