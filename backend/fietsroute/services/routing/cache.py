"""In-memory cache of recently computed routes."""

import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Optional

from fietsroute.schemas.routing import CachedRoute, Route, RouteRequest
from fietsroute.services.routing.geo import fingerprint, haversine

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RouteCache:
    """Bounded, oldest-first route cache with proximity matching.

    A cached route matches a request when both share the same start/end
    fingerprint, the cached request is younger than ``max_age`` and both
    endpoints lie within ``match_radius_m`` of the cached ones. Entries are
    not persisted across restarts.
    """

    def __init__(
        self,
        capacity: int = 10,
        max_age: timedelta = timedelta(hours=24),
        match_radius_m: float = 1000.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.capacity = capacity
        self.max_age = max_age
        self.match_radius_m = match_radius_m
        self.clock = clock
        self._entries: Deque[CachedRoute] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CachedRoute, now: datetime) -> bool:
        return now - entry.request.timestamp > self.max_age

    def _matches(self, entry: CachedRoute, request: RouteRequest) -> bool:
        cached = entry.request
        if fingerprint(cached.start) != fingerprint(request.start):
            return False
        if fingerprint(cached.end) != fingerprint(request.end):
            return False
        return (
            haversine(cached.start, request.start) <= self.match_radius_m
            and haversine(cached.end, request.end) <= self.match_radius_m
        )

    def get(self, request: RouteRequest) -> Optional[Route]:
        """Return the most recently cached matching route, if any."""
        self.evict_expired()

        for entry in reversed(self._entries):
            if self._matches(entry, request):
                logger.info(f"Route cache hit for request {request.id}")
                return entry.route
        return None

    def put(self, request: RouteRequest, route: Route) -> None:
        self._entries.append(
            CachedRoute(route=route, request=request, cached_at=self.clock())
        )
        while len(self._entries) > self.capacity:
            self._entries.popleft()

    def evict_expired(self) -> int:
        """Drop entries older than the maximum age. Returns how many went."""
        now = self.clock()
        before = len(self._entries)
        self._entries = deque(e for e in self._entries if not self._is_expired(e, now))
        evicted = before - len(self._entries)
        if evicted:
            logger.debug(f"Evicted {evicted} expired cached routes")
        return evicted

    def clear(self) -> None:
        self._entries.clear()
