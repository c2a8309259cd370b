import pytest

from fuelwatch.models import DeviceMapping
from fuelwatch.services import reconciliation


def test_create_mapping_copies_fleet_from_vehicle(client, make_vehicle):
    truck = make_vehicle("1ABC123", "Great Southern Fuels")

    response = client.post("/api/master-data/mappings", json={
        "system": "guardian",
        "external_id": "G-500",
        "vehicle_id": truck.id,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["fleet"] == "Great Southern Fuels"
    assert body["vehicle_registration"] == "1ABC123"
    assert body["verified"] is False


def test_create_mapping_rejects_supplied_fleet(client, db, make_vehicle):
    truck = make_vehicle()

    response = client.post("/api/master-data/mappings", json={
        "system": "guardian",
        "external_id": "G-500",
        "vehicle_id": truck.id,
        "fleet": "Great Southern Fuels",
    })

    assert response.status_code == 422
    assert db.query(DeviceMapping).count() == 0


def test_create_mapping_rejects_unknown_vehicle(client, db):
    response = client.post("/api/master-data/mappings", json={
        "system": "lytx",
        "external_id": "QM40999",
        "vehicle_id": 999,
    })

    assert response.status_code == 400
    assert "not found" in response.json()["detail"]
    assert db.query(DeviceMapping).count() == 0


def test_duplicate_mapping_rejected(client, make_vehicle, make_mapping):
    truck = make_vehicle()
    make_mapping(truck, "G-1")

    response = client.post("/api/master-data/mappings", json={
        "system": "guardian", "external_id": "G-1", "vehicle_id": truck.id,
    })

    assert response.status_code == 400


def test_update_mapping_rederives_fleet_and_clears_verification(client, make_vehicle, make_mapping):
    first = make_vehicle("1ABC123", "Stevemacs")
    second = make_vehicle("2XYZ999", "Great Southern Fuels")
    mapping = make_mapping(first, "G-1")
    client.post(f"/api/master-data/mappings/{mapping.id}/verify")

    response = client.put(f"/api/master-data/mappings/{mapping.id}", json={"vehicle_id": second.id})

    assert response.status_code == 200
    body = response.json()
    assert body["fleet"] == "Great Southern Fuels"
    assert body["vehicle_registration"] == "2XYZ999"
    assert body["verified"] is False


def test_vehicle_fleet_change_flows_to_mappings(client, db, make_vehicle, make_mapping):
    truck = make_vehicle("1ABC123", "Stevemacs")
    mapping = make_mapping(truck, "G-1")

    response = client.put(f"/api/vehicles/{truck.id}", json={"fleet": "Great Southern Fuels"})

    assert response.status_code == 200
    db.refresh(mapping)
    assert mapping.fleet == "Great Southern Fuels"


def test_vehicle_rejects_unknown_fleet(client):
    response = client.post("/api/vehicles", json={"registration": "1abc 123", "fleet": "Somebody Else"})
    assert response.status_code == 400


def test_vehicle_registration_is_normalised(client):
    response = client.post("/api/vehicles", json={"registration": "1abc 123", "fleet": "Stevemacs"})
    assert response.json()["registration"] == "1ABC123"


def test_mapping_mutation_invalidates_orphan_report(client, make_vehicle, make_event):
    truck = make_vehicle()
    make_event(external_id="G-7")
    make_event(external_id="G-8")

    before = client.get("/api/master-data/orphans", params={"system": "guardian"}).json()
    assert {o["external_id"] for o in before} == {"G-7", "G-8"}

    client.post("/api/master-data/mappings", json={
        "system": "guardian", "external_id": "G-7", "vehicle_id": truck.id,
    })

    after = client.get("/api/master-data/orphans", params={"system": "guardian"}).json()
    assert [o["external_id"] for o in after] == ["G-8"]


def test_sync_endpoint_clears_mismatches(client, make_vehicle, make_mapping, make_event):
    truck = make_vehicle("1ABC123", "Stevemacs")
    make_mapping(truck, "G-1")
    make_event(external_id="G-1", fleet="Great Southern Fuels", vehicle_registration="1ABC123")

    assert len(client.get("/api/master-data/mismatches").json()) == 1

    results = client.post("/api/master-data/sync", params={"system": "guardian"}).json()
    assert results[0]["updated_count"] == 1
    assert results[0]["mismatch_count_after"] == 0

    assert client.get("/api/master-data/mismatches").json() == []
    assert client.get("/api/master-data/sync-log").json()[0]["status"] == "completed"


def test_failed_sync_still_refreshes_mismatch_report(client, monkeypatch, make_vehicle, make_mapping, make_event):
    truck = make_vehicle("1ABC123", "Stevemacs")
    make_mapping(truck, "G-1")
    make_event(external_id="G-1", fleet="Great Southern Fuels", vehicle_registration="1ABC123")
    make_event(system="mtdata", external_id="MT-9")

    assert len(client.get("/api/master-data/mismatches").json()) == 1

    real_plan = reconciliation.plan_fleet_sync

    def plan_failing_for_mtdata(events, mappings, vehicles):
        if any(e.system == "mtdata" for e in events):
            raise RuntimeError("MtData trips unavailable")
        return real_plan(events, mappings, vehicles)

    monkeypatch.setattr(reconciliation, "plan_fleet_sync", plan_failing_for_mtdata)

    with pytest.raises(RuntimeError):
        client.post("/api/master-data/sync")

    # Guardian was committed before MtData failed
    assert client.get("/api/master-data/mismatches").json() == []


def test_missing_mapping_returns_404(client):
    assert client.get("/api/master-data/mappings/123").status_code == 404
    assert client.delete("/api/master-data/mappings/123").status_code == 404
