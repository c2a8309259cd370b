from datetime import datetime, timedelta

from fuelwatch.services.guardian_analytics import (
    compliance_metrics,
    critical_fatigue_events,
    fatigue_trend,
    is_fatigue,
    monthly_trends,
)

NOW = datetime(2025, 6, 30, 12, 0)


def ev(id, event_type, hours_ago, severity="Medium", verified=False, driver=None, confirmation=None):
    return {
        "id": id,
        "event_type": event_type,
        "occurred_at": NOW - timedelta(hours=hours_ago),
        "severity": severity,
        "verified": verified,
        "confirmation": confirmation,
        "driver_name": driver,
        "driver_id": None,
        "vehicle_registration": "1ABC123",
        "fleet": "Stevemacs",
    }


def test_microsleep_counts_as_fatigue():
    assert is_fatigue({"event_type": "Microsleep"})
    assert is_fatigue({"event_type": "fatigue"})
    assert not is_fatigue({"event_type": "distraction"})


def test_compliance_metrics():
    start = NOW - timedelta(days=7)
    events = [
        ev(1, "distraction", 10, verified=True, driver="Sam"),
        ev(2, "distraction", 30),
        ev(3, "fatigue", 5, confirmation="verified", driver="Alex"),
        ev(4, "microsleep", 72),
        # previous period
        ev(5, "distraction", 24 * 8),
        ev(6, "fatigue", 24 * 9),
        ev(7, "fatigue", 24 * 10),
        ev(8, "fatigue", 24 * 11),
        ev(9, "fatigue", 24 * 12),
    ]

    metrics = compliance_metrics(events, start, NOW)

    assert metrics.distraction.total == 2
    assert metrics.distraction.verified == 1
    assert metrics.distraction.verification_rate == 50.0
    assert metrics.distraction.driver_attribution_rate == 50.0
    assert metrics.distraction.trend == 100.0
    assert metrics.fatigue.total == 2
    assert metrics.fatigue.verified == 1
    assert metrics.fatigue.last_24h == 1
    assert metrics.fatigue.trend == -50.0


def test_compliance_metrics_empty():
    metrics = compliance_metrics([], NOW - timedelta(days=7), NOW)
    assert metrics.fatigue.total == 0
    assert metrics.fatigue.verification_rate == 0.0
    assert metrics.fatigue.trend == 0.0


def test_monthly_trends_are_ordered_by_month():
    events = [
        {"event_type": "fatigue", "occurred_at": datetime(2025, 5, 3), "verified": True},
        {"event_type": "fatigue", "occurred_at": datetime(2025, 4, 9), "verified": False},
        {"event_type": "fatigue", "occurred_at": datetime(2025, 5, 20), "verified": False},
        {"event_type": "distraction", "occurred_at": datetime(2025, 3, 1), "verified": False},
    ]

    trends = monthly_trends(events, "fatigue")

    assert [(t.month, t.total, t.verified) for t in trends] == [("2025-04", 1, 0), ("2025-05", 2, 1)]


def test_fatigue_trend_directions():
    week = [ev(i, "fatigue", 24 * 2) for i in range(20)]
    prior = [ev(100 + i, "fatigue", 24 * 9) for i in range(20)]

    assert fatigue_trend(week + prior, NOW).change_direction == "stable"
    assert fatigue_trend(week + prior[:10], NOW).change_direction == "up"
    assert fatigue_trend(week[:10] + prior, NOW).change_direction == "down"
    # Within five percent
    assert fatigue_trend(week + prior + [ev(999, "fatigue", 24 * 10)], NOW).change_direction == "stable"


def test_critical_fatigue_ordering():
    events = [
        ev(1, "fatigue", 48, severity="Critical"),
        ev(2, "fatigue", 2, severity="Low"),
        ev(3, "fatigue", 6, severity="High"),
        ev(4, "fatigue", 1, severity="High"),
        ev(5, "distraction", 1, severity="Critical"),
        ev(6, "microsleep", 30, severity="Low"),
    ]

    ordered = critical_fatigue_events(events, NOW)

    assert [e.id for e in ordered] == [4, 3, 2, 1, 6]
    assert [e.is_recent for e in ordered] == [True, True, True, False, False]
