from datetime import datetime

from fuelwatch.models import DipReading
from fuelwatch.services.tank_service import UNKNOWN_TANK, build_dip_history, parse_timestamp


def test_parse_timestamp_formats():
    assert parse_timestamp("2025-03-01 08:30:00") == datetime(2025, 3, 1, 8, 30)
    assert parse_timestamp('"01/03/2025 08:30"') == datetime(2025, 3, 1, 8, 30)
    assert parse_timestamp("2025-03-01") == datetime(2025, 3, 1)
    assert parse_timestamp("yesterday") is None


def test_dip_history_placeholder_for_unloaded_tank():
    reading = DipReading(id=1, tank_id=77, timestamp=datetime(2025, 3, 1), value=120.0)

    [row] = build_dip_history([reading], {})

    assert row.tank_name == UNKNOWN_TANK
    assert row.customer_name == "Unknown Customer"
    assert row.value == 120.0
