from datetime import datetime

from fuelwatch.schemas.filters import FilterSpec
from fuelwatch.services.presentation import (
    UNKNOWN_CUSTOMER,
    apply_filter_spec,
    apply_filters,
    group_by_customer,
    matches_search,
    sort_records,
)

TANKS = [
    {"id": 1, "name": "Kewdale Diesel", "customer_name": "BP Kewdale", "unit_number": "2", "tank_number": "1", "status": "low", "level": 40.0},
    {"id": 2, "name": "Narrogin ULP", "customer_name": "Great Southern Fuels", "unit_number": "1", "tank_number": "2", "status": "normal", "level": 55.0},
    {"id": 3, "name": "Katanning", "customer_name": None, "unit_number": "4", "tank_number": "1", "status": "critical", "level": None},
    {"id": 4, "name": "Kewdale ADF", "customer_name": "BP Kewdale", "unit_number": "1", "tank_number": "3", "status": "normal", "level": 40.0},
    {"id": 5, "name": "Albany", "customer_name": "  ", "unit_number": "1", "tank_number": "1", "status": "high", "level": 90.0},
]


def ids(records):
    return [r["id"] for r in records]


def test_search_is_case_insensitive_substring():
    assert matches_search(TANKS[0], "kewDALE")
    assert not matches_search(TANKS[1], "kewdale")
    assert matches_search(TANKS[1], "   ")


def test_filters_combine():
    spec = FilterSpec(search_text="kewdale", status_filter="normal")
    assert ids(apply_filters(TANKS, spec)) == [4]


def test_all_means_no_filter():
    assert len(apply_filters(TANKS, FilterSpec())) == len(TANKS)


def test_sort_is_deterministic():
    first = sort_records(TANKS, "level", "asc")
    second = sort_records(TANKS, "level", "asc")
    assert ids(first) == ids(second)


def test_descending_is_exact_reverse_of_ascending():
    for key in ("level", "name", "customer_name", "unit_number"):
        ascending = sort_records(TANKS, key, "asc")
        descending = sort_records(TANKS, key, "desc")
        assert ids(descending) == ids(ascending)[::-1]


def test_ties_keep_input_order_ascending():
    # Tanks 1 and 4 share a level of 40
    assert ids(sort_records(TANKS, "level", "asc")) == [3, 1, 4, 2, 5]


def test_sort_handles_mixed_dates_and_none():
    records = [
        {"id": 1, "at": datetime(2025, 3, 2)},
        {"id": 2, "at": None},
        {"id": 3, "at": datetime(2025, 1, 1)},
    ]
    assert ids(sort_records(records, "at", "asc")) == [2, 3, 1]


def test_group_by_customer_puts_unknown_last():
    groups = group_by_customer(TANKS)

    assert [g.customer_name for g in groups] == ["BP Kewdale", "Great Southern Fuels", UNKNOWN_CUSTOMER]
    assert ids(groups[0].items) == [4, 1]
    # Blank and missing customers share the unknown group, ordered by unit then tank
    assert ids(groups[-1].items) == [5, 3]


def test_empty_reason_distinguishes_no_data_from_no_matches():
    assert apply_filter_spec([], FilterSpec()).empty_reason == "no_data"

    result = apply_filter_spec(TANKS, FilterSpec(search_text="nothing like this"))
    assert result.empty_reason == "no_matches"
    assert result.total == len(TANKS)
    assert result.filtered == 0

    assert apply_filter_spec(TANKS, FilterSpec()).empty_reason is None


def test_apply_filter_spec_groups_filtered_records():
    result = apply_filter_spec(TANKS, FilterSpec(customer_filter="BP Kewdale"), group_by_customer_name=True)

    assert result.filtered == 2
    assert len(result.groups) == 1
    assert result.groups[0].customer_name == "BP Kewdale"
