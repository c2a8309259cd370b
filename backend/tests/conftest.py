import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FLEET_SYNC_ENABLED"] = "false"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fuelwatch.api.common import report_cache
from fuelwatch.database import Base, get_db
from fuelwatch.main import app
from fuelwatch.models import DeviceMapping, FleetEvent, Tank, Vehicle
from fuelwatch.services.fuel_analytics import analyze_tank

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    report_cache.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    report_cache.clear()


@pytest.fixture(autouse=True)
def clear_analytics_cache():
    analyze_tank.cache_clear()
    yield


@pytest.fixture
def make_vehicle(db):
    def _make(registration="1ABC123", fleet="Stevemacs", **kwargs):
        vehicle = Vehicle(registration=registration, fleet=fleet, **kwargs)
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle
    return _make


@pytest.fixture
def make_event(db):
    def _make(system="guardian", external_id=None, occurred_at=None, **kwargs):
        event = FleetEvent(
            system=system,
            external_id=external_id,
            occurred_at=occurred_at or datetime(2025, 3, 1, 8, 0),
            **kwargs,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event
    return _make


@pytest.fixture
def make_mapping(db):
    def _make(vehicle, external_id, system="guardian"):
        mapping = DeviceMapping(
            system=system,
            external_id=external_id,
            vehicle_id=vehicle.id,
            vehicle_registration=vehicle.registration,
            fleet=vehicle.fleet,
        )
        db.add(mapping)
        db.commit()
        db.refresh(mapping)
        return mapping
    return _make


@pytest.fixture
def make_tank(db):
    def _make(name="Depot Diesel", capacity=10000.0, **kwargs):
        tank = Tank(name=name, capacity=capacity, **kwargs)
        db.add(tank)
        db.commit()
        db.refresh(tank)
        return tank
    return _make
