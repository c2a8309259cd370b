"""
Caching primitives.

- memoize_pure: LRU memoisation of pure analytics functions, returning
  copies of the cached results.
- QueryCache: cached query results, optionally expiring, with an explicit graph
  of which mutations invalidate which queries.
- RequestTracker: rejects responses for requests that have been superseded by
  a newer request for the same logical query.
"""
import copy
import hashlib
import json
import logging
import threading
import time
from datetime import date, datetime
from enum import Enum
from functools import lru_cache, wraps
from typing import Any, Callable, Dict, Optional, Set, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# Mutation name -> query names whose cached results it invalidates
MUTATION_DEPENDENCIES: Dict[str, Set[str]] = {
    "mapping.create": {"orphans", "mismatches", "quality", "mappings"},
    "mapping.update": {"orphans", "mismatches", "quality", "mappings"},
    "mapping.delete": {"orphans", "mismatches", "quality", "mappings"},
    "mapping.verify": {"mappings"},
    "vehicle.create": {"mismatches", "vehicles"},
    "vehicle.update": {"mismatches", "vehicles", "mappings"},
    "vehicle.delete": {"mismatches", "vehicles", "mappings", "orphans", "quality"},
    "event.create": {"orphans", "mismatches", "quality", "guardian"},
    "fleet.sync": {"mismatches", "quality", "guardian", "sync_log"},
    "reading.create": {"tank_history", "tank_analytics", "tanks"},
    "reading.import": {"tank_history", "tank_analytics", "tanks"},
    "tank.update": {"tanks", "tank_analytics"},
}


def _normalise(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _normalise(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_normalise(v) for v in value]
        if isinstance(value, (set, frozenset)):
            items.sort(key=repr)
        return items
    return value


def stable_key(*args, **kwargs) -> str:
    """Hash of the arguments that is identical for equal inputs across calls."""
    payload = json.dumps(
        {"args": _normalise(args), "kwargs": _normalise(kwargs)},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def memoize_pure(maxsize: int = 256):
    """
    LRU memoisation for pure functions with hashable arguments. Results are
    deep-copied on the way out so callers can never mutate a cached value.
    """
    def decorator(func: Callable):
        cached = lru_cache(maxsize=maxsize)(func)

        @wraps(func)
        def wrapper(*args, **kwargs):
            return copy.deepcopy(cached(*args, **kwargs))

        wrapper.cache_clear = cached.cache_clear
        wrapper.cache_info = cached.cache_info
        return wrapper

    return decorator


class QueryCache:
    """
    Cached query results, invalidated by declared mutation dependencies.

    With default_ttl set, entries also expire after that many seconds, which
    bounds staleness from writes this process never sees (other workers,
    direct imports).
    """

    def __init__(
        self,
        dependencies: Optional[Dict[str, Set[str]]] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dependencies = dependencies if dependencies is not None else MUTATION_DEPENDENCIES
        self.default_ttl = default_ttl
        self._clock = clock
        # (query, params key) -> (expires_at or None, value)
        self._entries: Dict[Tuple[str, str], Tuple[Optional[float], Any]] = {}
        self._lock = threading.Lock()

    def _live(self, key: Tuple[str, str]) -> Optional[Tuple[Optional[float], Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[0]
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    def _store(self, key: Tuple[str, str], value: Any) -> None:
        expires_at = self._clock() + self.default_ttl if self.default_ttl else None
        self._entries[key] = (expires_at, value)

    def get(self, query: str, params: Optional[dict] = None) -> Any:
        with self._lock:
            entry = self._live((query, stable_key(params or {})))
            return entry[1] if entry else None

    def contains(self, query: str, params: Optional[dict] = None) -> bool:
        with self._lock:
            return self._live((query, stable_key(params or {}))) is not None

    def set(self, query: str, params: Optional[dict], value: Any) -> None:
        with self._lock:
            self._store((query, stable_key(params or {})), value)

    def get_or_compute(self, query: str, params: Optional[dict], compute: Callable[[], Any]) -> Any:
        key = (query, stable_key(params or {}))
        with self._lock:
            entry = self._live(key)
            if entry is not None:
                return entry[1]
        value = compute()
        with self._lock:
            self._store(key, value)
        return value

    def invalidate_query(self, query: str) -> int:
        with self._lock:
            stale = [key for key in self._entries if key[0] == query]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def invalidate(self, mutation: str) -> Set[str]:
        """Drop every cached query the mutation depends on; returns their names."""
        queries = self.dependencies.get(mutation)
        if queries is None:
            logger.warning(f"No cache dependencies declared for mutation '{mutation}'")
            return set()
        dropped = 0
        for query in queries:
            dropped += self.invalidate_query(query)
        logger.debug(f"Mutation '{mutation}' invalidated {dropped} cached entries")
        return set(queries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RequestTracker:
    """
    Tracks the newest request per logical query. A response is only applied if
    its ticket is still the current one for that query.
    """

    def __init__(self):
        self._current: Dict[str, Tuple[int, str]] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def begin(self, query: str, params: Optional[dict] = None) -> Tuple[str, int, str]:
        with self._lock:
            self._counter += 1
            ticket = (query, self._counter, stable_key(params or {}))
            self._current[query] = (ticket[1], ticket[2])
            return ticket

    def is_current(self, ticket: Tuple[str, int, str]) -> bool:
        query, generation, key = ticket
        with self._lock:
            return self._current.get(query) == (generation, key)

    def current_params_key(self, query: str) -> Optional[str]:
        with self._lock:
            entry = self._current.get(query)
            return entry[1] if entry else None
