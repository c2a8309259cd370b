"""
Filtering, sorting and grouping shared by every list endpoint.

Records may be dicts, ORM objects or pydantic models; fields are read with
get_field so the same FilterSpec works for all of them.
"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from fuelwatch.schemas.filters import ALL, CustomerGroup, FilterSpec, ListResult

UNKNOWN_CUSTOMER = "Unknown Customer"

DEFAULT_SEARCH_FIELDS = ("customer_name", "unit_number", "tank_number", "name", "description")


def get_field(record: Any, field: str) -> Any:
    if isinstance(record, dict):
        return record.get(field)
    return getattr(record, field, None)


def sort_value(value: Any) -> Tuple:
    """
    Total-order key for a single field value. None sorts before everything,
    numbers compare numerically, dates chronologically and strings
    case-insensitively.
    """
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float, Decimal)):
        return (1, float(value))
    if isinstance(value, datetime):
        return (2, value.replace(tzinfo=None) if value.tzinfo else value)
    if isinstance(value, date):
        return (2, datetime.combine(value, time.min))
    text = str(value)
    return (3, text.casefold(), text)


def matches_search(record: Any, search_text: Optional[str], fields: Sequence[str] = DEFAULT_SEARCH_FIELDS) -> bool:
    if not search_text or not search_text.strip():
        return True
    needle = search_text.strip().casefold()
    for field in fields:
        value = get_field(record, field)
        if value is not None and needle in str(value).casefold():
            return True
    return False


def matches_category(record: Any, field: str, wanted: Optional[str]) -> bool:
    if wanted is None or wanted == ALL:
        return True
    return get_field(record, field) == wanted


def apply_filters(
    records: Iterable[Any],
    spec: FilterSpec,
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
    status_field: str = "status",
    customer_field: str = "customer_name",
) -> List[Any]:
    return [
        r for r in records
        if matches_search(r, spec.search_text, search_fields)
        and matches_category(r, status_field, spec.status_filter)
        and matches_category(r, customer_field, spec.customer_filter)
    ]


def sort_records(records: Iterable[Any], sort_key: Optional[str], direction: str = "asc") -> List[Any]:
    """
    Stable sort on one key. Descending is the exact reverse of ascending, so
    ties come out in reverse input order too.
    """
    items = list(records)
    if not sort_key:
        return items if direction == "asc" else items[::-1]
    items.sort(key=lambda r: sort_value(get_field(r, sort_key)))
    if direction == "desc":
        items.reverse()
    return items


def customer_of(record: Any, customer_field: str = "customer_name") -> str:
    value = get_field(record, customer_field)
    if value is None or not str(value).strip():
        return UNKNOWN_CUSTOMER
    return str(value)


def group_by_customer(
    records: Iterable[Any],
    customer_field: str = "customer_name",
    secondary_keys: Sequence[str] = ("unit_number", "tank_number"),
) -> List[CustomerGroup]:
    """Partition into customer groups, name order with the unknown group last."""
    buckets: Dict[str, List[Any]] = {}
    for record in records:
        buckets.setdefault(customer_of(record, customer_field), []).append(record)

    def group_order(name: str) -> Tuple:
        return (name == UNKNOWN_CUSTOMER, name.casefold(), name)

    def member_order(record: Any) -> Tuple:
        return tuple(sort_value(get_field(record, key)) for key in secondary_keys)

    return [
        CustomerGroup(customer_name=name, items=sorted(buckets[name], key=member_order))
        for name in sorted(buckets, key=group_order)
    ]


def apply_filter_spec(
    records: Sequence[Any],
    spec: FilterSpec,
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
    status_field: str = "status",
    customer_field: str = "customer_name",
    group_by_customer_name: bool = False,
    secondary_keys: Sequence[str] = ("unit_number", "tank_number"),
    serialize: Optional[Callable[[Any], Any]] = None,
) -> ListResult:
    filtered = apply_filters(records, spec, search_fields, status_field, customer_field)
    ordered = sort_records(filtered, spec.sort_key, spec.sort_direction)

    empty_reason = None
    if not records:
        empty_reason = "no_data"
    elif not ordered:
        empty_reason = "no_matches"

    groups = None
    if group_by_customer_name:
        groups = group_by_customer(ordered, customer_field, secondary_keys)
        if serialize:
            groups = [CustomerGroup(customer_name=g.customer_name, items=[serialize(i) for i in g.items]) for g in groups]

    return ListResult(
        items=[serialize(r) for r in ordered] if serialize else ordered,
        groups=groups,
        total=len(records),
        filtered=len(ordered),
        empty_reason=empty_reason,
    )
