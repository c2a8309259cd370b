from pydantic import BaseModel
from typing import Any, List, Literal, Optional

ALL = "all"


class FilterSpec(BaseModel):
    """The filter state shared by every list page."""
    search_text: Optional[str] = None
    status_filter: str = ALL
    customer_filter: str = ALL
    sort_key: Optional[str] = None
    sort_direction: Literal["asc", "desc"] = "asc"

    class Config:
        frozen = True


class CustomerGroup(BaseModel):
    customer_name: str
    items: List[Any]


class ListResult(BaseModel):
    items: List[Any] = []
    groups: Optional[List[CustomerGroup]] = None
    total: int = 0
    filtered: int = 0
    # "no_data" when nothing exists at all, "no_matches" when filters removed everything
    empty_reason: Optional[Literal["no_data", "no_matches"]] = None
