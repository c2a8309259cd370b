from datetime import datetime, timedelta

import pytest

from fuelwatch.schemas.analytics import ReadingPoint, TankProfile
from fuelwatch.services.fuel_analytics import (
    analyze_tank,
    calculate_consumption_metrics,
    calculate_refuel_analytics,
    calculate_time_in_zones,
    classify_trend,
    detect_refuel_events,
    effective_capacity,
    stability_score,
    zone_for,
)

START = datetime(2025, 1, 6, 8, 0)


def series(values, start=START, step=timedelta(days=1)):
    return [ReadingPoint(timestamp=start + step * i, value=v) for i, v in enumerate(values)]


@pytest.mark.parametrize("values", [[], [500.0]])
def test_consumption_metrics_on_degenerate_input(values):
    metrics = calculate_consumption_metrics(series(values))

    assert metrics.daily_average_consumption == 0
    assert metrics.total_consumed_in_period == 0
    assert metrics.consumption_trend == "stable"
    assert metrics.peak_consumption_day is None


@pytest.mark.parametrize("values", [[], [500.0]])
def test_full_report_on_degenerate_input(values):
    report = analyze_tank(series(values), TankProfile(capacity=1000))

    assert report.reading_count == len(values)
    assert report.refuel_events == []
    assert report.refuels.total_refuels == 0
    assert report.alerts == []


def test_refuel_threshold_detects_single_event():
    readings = series([100, 98, 97, 150, 148])

    events = detect_refuel_events(readings, capacity=200, threshold_fraction=0.05)

    assert len(events) == 1
    assert events[0].volume_added == 53.0
    assert events[0].before_level == 97
    assert events[0].after_level == 150
    assert events[0].date == readings[3].timestamp
    assert events[0].time_since_last is None


def test_rise_below_threshold_is_not_a_refuel():
    # 9 < 5% of 200
    assert detect_refuel_events(series([100, 109]), capacity=200, threshold_fraction=0.05) == []


def test_refuel_interval_is_days_since_previous_refuel():
    events = detect_refuel_events(series([20, 90, 60, 30, 95]), capacity=100)

    assert [e.time_since_last for e in events] == [None, 3.0]


def test_missing_capacity_falls_back_to_highest_reading():
    readings = series([100, 98, 97, 150, 148])

    assert effective_capacity(readings, None) == 150
    assert len(detect_refuel_events(readings, capacity=None)) == 1


def test_scenario_refuel_average_and_trend():
    readings = series([80, 65, 40, 95])
    report = analyze_tank(readings, TankProfile(capacity=100))

    assert len(report.refuel_events) == 1
    assert report.refuel_events[0].date == readings[3].timestamp
    assert report.refuel_events[0].volume_added == 55.0
    assert report.consumption.daily_average_consumption == 20.0
    assert report.consumption.consumption_trend == "increasing"
    assert report.consumption.total_consumed_in_period == 40.0
    assert report.consumption.consumption_stability_score == 75.0


def test_equal_drops_before_refuel_read_as_stable():
    report = analyze_tank(series([80, 60, 40, 95]), TankProfile(capacity=100))

    assert report.consumption.daily_average_consumption == 20.0
    assert report.consumption.consumption_trend == "stable"


def test_refuels_never_count_as_consumption():
    metrics = calculate_consumption_metrics(series([100, 90, 190, 180]))

    assert metrics.total_consumed_in_period == 20.0
    assert metrics.daily_average_consumption == 10.0


@pytest.mark.parametrize("rates, expected", [
    ([10, 10, 10, 10], "stable"),
    ([10, 10, 10.5, 10.5], "stable"),
    ([10, 10, 15, 15], "increasing"),
    ([10, 10, 5, 5], "decreasing"),
    ([10], "stable"),
])
def test_classify_trend_uses_ten_percent_tolerance(rates, expected):
    assert classify_trend(rates, tolerance_pct=10.0) == expected


def test_stability_score_bounds():
    assert stability_score([]) == 0.0
    assert stability_score([5, 5, 5]) == 100.0
    assert 0.0 <= stability_score([1, 100, 1, 100]) <= 100.0


@pytest.mark.parametrize("values, capacity", [
    ([100, 98, 97, 150, 148], 200),
    ([5, 20, 50, 90, 3, 60], 100),
    ([900, 850, 700, 400, 200, 50, 950], 1000),
])
def test_time_in_zones_sums_to_one_hundred(values, capacity):
    readings = series(values, step=timedelta(hours=7))
    zones = calculate_time_in_zones(readings, capacity)

    assert abs(zones.critical + zones.low + zones.normal + zones.high - 100.0) <= 0.1


@pytest.mark.parametrize("percent, zone", [
    (None, "no_data"),
    (5, "critical"),
    (10, "critical"),
    (20, "low"),
    (50, "normal"),
    (71, "high"),
])
def test_zone_for(percent, zone):
    assert zone_for(percent) == zone


def test_refuel_prediction_uses_average_interval():
    readings = series([20, 90, 60, 30, 95, 80])
    events = detect_refuel_events(readings, 100)

    refuels = calculate_refuel_analytics(events, readings, 100)

    assert refuels.total_refuels == 2
    assert refuels.average_days_between_refuels == 3.0
    assert refuels.days_since_last_refuel == 1
    assert refuels.next_predicted_refuel_days == 2
    assert refuels.next_predicted_refuel == readings[-1].timestamp + timedelta(days=2)


def test_analyze_tank_is_memoised():
    readings = series([80, 65, 40, 95])
    profile = TankProfile(capacity=100)

    first = analyze_tank(readings, profile, tank_id=1)
    second = analyze_tank(list(readings), profile, tank_id=1)

    assert first == second
    assert analyze_tank.cache_info().hits == 1
    assert analyze_tank.cache_info().misses == 1


def test_memoised_result_cannot_be_mutated_by_caller():
    readings = series([80, 65, 40, 95])
    profile = TankProfile(capacity=100)

    first = analyze_tank(readings, profile)
    first.alerts.append("changed")

    assert "changed" not in analyze_tank(readings, profile).alerts


def test_low_level_alert():
    report = analyze_tank(series([80, 60, 20]), TankProfile(capacity=100))

    assert "Tank level below 30% - refuel may be required" in report.alerts
