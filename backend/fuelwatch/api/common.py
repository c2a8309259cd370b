from fastapi import Query
from typing import Literal, Optional

from fuelwatch.cache import QueryCache
from fuelwatch.config import settings
from fuelwatch.schemas.filters import ALL, FilterSpec

# Server-side cache for the master-data reports
report_cache = QueryCache(default_ttl=settings.report_cache_ttl_seconds)


def filter_spec(
    search: Optional[str] = Query(None, description="Case-insensitive text search"),
    status: str = Query(ALL, description="Status filter, 'all' for none"),
    customer: str = Query(ALL, description="Customer filter, 'all' for none"),
    sort_key: Optional[str] = Query(None),
    sort_direction: Literal["asc", "desc"] = Query("asc"),
) -> FilterSpec:
    """Build a FilterSpec from the list-page query parameters."""
    return FilterSpec(
        search_text=search,
        status_filter=status,
        customer_filter=customer,
        sort_key=sort_key,
        sort_direction=sort_direction,
    )
