"""
Async client for the Fuelwatch API.

Every read goes through a named logical query ("tank_history", "orphans", ...)
whose latest result is held as a QueryState. Results are cached per parameter
set; a response that arrives after a newer request for the same query has been
issued is dropped. Nothing is retried automatically: callers use retry(query)
after an error. Mutations invalidate dependent queries through the cache's
dependency graph.
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import logging

import httpx
from pydantic import BaseModel, ValidationError

from fuelwatch.cache import QueryCache, RequestTracker
from fuelwatch.config import settings
from fuelwatch.schemas.mapping import MappingCreate, MappingUpdate

logger = logging.getLogger(__name__)


class QueryState(BaseModel):
    data: Any = None
    loading: bool = False
    error: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class FuelwatchError(Exception):
    """A request failed or the server rejected it."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FieldValidationError(FuelwatchError):
    """Mutation input rejected before any request was sent."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors


def _query_params(params: Dict[str, Any]) -> Dict[str, Any]:
    clean = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        clean[key] = value
    return clean


def _error_message(exc: httpx.HTTPError) -> Tuple[str, Optional[int]]:
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        return (str(detail) if detail else f"HTTP {response.status_code}"), response.status_code
    return f"Request failed: {exc}", None


def _field_errors(exc: ValidationError) -> Dict[str, str]:
    return {".".join(str(p) for p in err["loc"]) or "__root__": err["msg"] for err in exc.errors()}


class FuelwatchClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[QueryCache] = None,
    ):
        self._http = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.client_timeout_seconds,
        )
        self.cache = cache or QueryCache()
        self.tracker = RequestTracker()
        self._states: Dict[str, QueryState] = {}
        self._requests: Dict[str, Tuple[str, Dict[str, Any], Optional[Dict[str, Any]]]] = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    def state(self, query: str) -> QueryState:
        return self._states.get(query, QueryState())

    async def _query(
        self,
        query: str,
        path: str,
        params: Dict[str, Any],
        path_params: Optional[Dict[str, Any]] = None,
        force: bool = False,
    ) -> QueryState:
        # The cache and stale-response keys cover path parameters too
        key = {**(path_params or {}), **params}
        self._requests[query] = (path, params, path_params)
        # Every issued request supersedes older in-flight ones, cache hits included
        ticket = self.tracker.begin(query, key)
        if not force and self.cache.contains(query, key):
            self._states[query] = QueryState(data=self.cache.get(query, key), params=params)
            return self._states[query]

        previous = self._states.get(query)
        self._states[query] = QueryState(
            data=previous.data if previous else None,
            loading=True,
            params=params,
        )

        try:
            response = await self._http.get(path, params=_query_params(params))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            if not self.tracker.is_current(ticket):
                logger.debug(f"Dropping stale error for {query}")
                return self.state(query)
            message, _ = _error_message(e)
            logger.warning(f"Query {query} failed: {message}")
            self._states[query] = QueryState(error=message, params=params)
            return self._states[query]

        if not self.tracker.is_current(ticket):
            logger.debug(f"Dropping stale response for {query}")
            return self.state(query)

        self.cache.set(query, key, data)
        self._states[query] = QueryState(data=data, params=params)
        return self._states[query]

    async def retry(self, query: str) -> QueryState:
        """Re-issue the most recent request for a query, bypassing the cache."""
        if query not in self._requests:
            raise FuelwatchError(f"No previous request for '{query}'")
        path, params, path_params = self._requests[query]
        return await self._query(query, path, params, path_params, force=True)

    # --- Queries ---

    async def tanks(self, **filters) -> QueryState:
        return await self._query("tanks", "/api/tanks", filters)

    async def tank_history(
        self,
        tank_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        **filters,
    ) -> QueryState:
        params = {"start_date": start_date, "end_date": end_date, **filters}
        return await self._query("tank_history", f"/api/tanks/{tank_id}/readings", params, {"tank_id": tank_id})

    async def tank_analytics(self, tank_id: int, days: Optional[int] = None) -> QueryState:
        return await self._query(
            "tank_analytics", f"/api/tanks/{tank_id}/analytics", {"days": days}, {"tank_id": tank_id}
        )

    async def mappings(self, system: Optional[str] = None, **filters) -> QueryState:
        return await self._query("mappings", "/api/master-data/mappings", {"system": system, **filters})

    async def orphans(self, system: str) -> QueryState:
        return await self._query("orphans", "/api/master-data/orphans", {"system": system})

    async def mismatches(self, system: Optional[str] = None) -> QueryState:
        return await self._query("mismatches", "/api/master-data/mismatches", {"system": system})

    async def mapping_quality(self) -> QueryState:
        return await self._query("quality", "/api/master-data/quality", {})

    async def guardian_compliance(
        self,
        fleet: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> QueryState:
        params = {"fleet": fleet, "start_date": start_date, "end_date": end_date}
        return await self._query("guardian", "/api/guardian/compliance", params)

    # --- Mutations ---

    async def _mutate(
        self,
        mutation: str,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._http.request(method, path, json=payload, params=_query_params(params or {}))
            response.raise_for_status()
        except httpx.HTTPError as e:
            message, status_code = _error_message(e)
            logger.warning(f"Mutation {mutation} failed: {message}")
            raise FuelwatchError(message, status_code) from e

        invalidated = self.cache.invalidate(mutation)
        logger.debug(f"{mutation} invalidated {sorted(invalidated)}")
        return response.json()

    async def create_mapping(self, **fields) -> dict:
        try:
            payload = MappingCreate(**fields).model_dump(mode="json")
        except ValidationError as e:
            raise FieldValidationError(_field_errors(e)) from e
        return await self._mutate("mapping.create", "POST", "/api/master-data/mappings", payload)

    async def update_mapping(self, mapping_id: int, **fields) -> dict:
        try:
            payload = MappingUpdate(**fields).model_dump(mode="json", exclude_unset=True)
        except ValidationError as e:
            raise FieldValidationError(_field_errors(e)) from e
        return await self._mutate("mapping.update", "PUT", f"/api/master-data/mappings/{mapping_id}", payload)

    async def verify_mapping(self, mapping_id: int) -> dict:
        return await self._mutate("mapping.verify", "POST", f"/api/master-data/mappings/{mapping_id}/verify")

    async def delete_mapping(self, mapping_id: int) -> dict:
        return await self._mutate("mapping.delete", "DELETE", f"/api/master-data/mappings/{mapping_id}")

    async def sync_fleets(self, system: Optional[str] = None) -> list:
        return await self._mutate("fleet.sync", "POST", "/api/master-data/sync", params={"system": system})
