"""Route coordinator: cache, provider fallback, scoring, persistence."""

import asyncio
import logging
from typing import Callable, List, Literal, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from fietsroute.schemas.routing import Route, RouteRequest
from fietsroute.services.routing.cache import RouteCache
from fietsroute.services.routing.cycling import MAX_POLYLINE_POINTS, route_from_raw
from fietsroute.services.routing.errors import (
    AllProvidersFailed,
    InvalidCoordinates,
    NetworkError,
    RouteError,
)
from fietsroute.services.routing.geo import ENDPOINT_TOLERANCE
from fietsroute.services.routing.providers.base import RoutingProvider
from fietsroute.services.routing.scoring import ScoringEngine

logger = logging.getLogger(__name__)


class RouteEvent(BaseModel):
    """Outcome of one compute call, delivered to subscribers."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["completed", "failed"]
    request_id: UUID
    route: Optional[Route] = None
    error: Optional[RouteError] = None


RouteEventCallback = Callable[[RouteEvent], None]


class RouteCoordinator:
    """Computes routes and owns the in-memory working set.

    Providers are tried one at a time in the given order. The working set and
    the cache are only touched while holding ``_lock``, and nothing is awaited
    while it is held.
    """

    def __init__(
        self,
        providers: Sequence[RoutingProvider],
        scoring: ScoringEngine,
        cache: RouteCache,
        store=None,
        offline_only: bool = False,
        working_set_limit: int = 3,
        default_timeout: Optional[float] = None,
        max_points: int = MAX_POLYLINE_POINTS,
    ):
        self.providers = list(providers)
        self.scoring = scoring
        self.cache = cache
        self.store = store
        self.offline_only = offline_only
        self.working_set_limit = working_set_limit
        self.default_timeout = default_timeout
        self.max_points = max_points

        self._routes: List[Route] = []
        self._lock = asyncio.Lock()
        self._in_flight = 0
        self._last_error: Optional[str] = None
        self._subscribers: List[RouteEventCallback] = []

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def routes(self) -> Tuple[Route, ...]:
        return tuple(self._routes)

    @property
    def is_calculating(self) -> bool:
        return self._in_flight > 0

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def subscribe(self, callback: RouteEventCallback) -> Callable[[], None]:
        """Register a callback for completed/failed events. Returns an unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: RouteEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Route event subscriber failed")

    def _completed(self, request: RouteRequest, route: Route) -> Route:
        self._last_error = None
        self._emit(RouteEvent(kind="completed", request_id=request.id, route=route))
        return route

    def _failed(self, request: RouteRequest, error: RouteError) -> None:
        self._last_error = error.message
        self._emit(RouteEvent(kind="failed", request_id=request.id, error=error))

    # =========================================================================
    # Compute
    # =========================================================================

    async def compute(
        self, request: RouteRequest, timeout: Optional[float] = None
    ) -> Route:
        """Compute a route for a request.

        Raises:
            InvalidCoordinates: start, end or a waypoint is out of bounds.
            AllProvidersFailed: every provider failed; the last error is
                attached as ``cause``.
        """
        try:
            self._validate(request)
        except InvalidCoordinates as e:
            self._failed(request, e)
            raise

        async with self._lock:
            cached = self.cache.get(request)
        if cached is not None:
            return self._completed(request, cached)

        self._in_flight += 1
        try:
            route = await self._run_providers(
                request, timeout if timeout is not None else self.default_timeout
            )
        except AllProvidersFailed as e:
            logger.error(f"Route calculation failed for request {request.id}: {e.message}")
            self._failed(request, e)
            raise
        finally:
            self._in_flight -= 1

        route = await self._accept(request, route)
        return self._completed(request, route)

    def _validate(self, request: RouteRequest) -> None:
        if not request.start.is_valid:
            raise InvalidCoordinates("Start coordinate is out of bounds")
        if not request.end.is_valid:
            raise InvalidCoordinates("End coordinate is out of bounds")
        for i, waypoint in enumerate(request.waypoints):
            if not waypoint.is_valid:
                raise InvalidCoordinates(f"Waypoint {i} is out of bounds")

    def _active_providers(self) -> List[RoutingProvider]:
        if self.offline_only:
            return [p for p in self.providers if p.is_offline]
        return self.providers

    async def _run_providers(
        self, request: RouteRequest, timeout: Optional[float]
    ) -> Route:
        last_error: Optional[RouteError] = None

        for provider in self._active_providers():
            try:
                result = await asyncio.wait_for(
                    provider.compute_route(
                        request.start,
                        request.end,
                        request.waypoints,
                        request.bike_type,
                        request.preferences,
                    ),
                    timeout,
                )
                route = self._to_route(provider, request, result)
            except TimeoutError:
                last_error = NetworkError(f"{provider.name} timed out after {timeout}s")
                logger.warning(f"Provider {provider.name} failed: {last_error.message}")
                continue
            except RouteError as e:
                last_error = e
                logger.warning(
                    f"Provider {provider.name} failed: {type(e).__name__}: {e.message}"
                )
                continue

            logger.info(
                f"Route from {provider.name}: {route.distance:.0f}m, "
                f"{len(route.polyline)} points"
            )
            return route

        error = AllProvidersFailed(last_error)
        raise error from last_error

    def _to_route(self, provider: RoutingProvider, request: RouteRequest, result) -> Route:
        if isinstance(result, Route):
            return result

        raw = self.scoring.select(result, request.bike_type, request.preferences)
        return route_from_raw(
            raw,
            request.start,
            request.end,
            request.waypoints,
            request.bike_type,
            provider=provider.name,
            max_points=self.max_points,
        )

    def _find_duplicate(self, route: Route) -> Optional[Route]:
        for existing in self._routes:
            if existing.start.is_close_to(
                route.start, ENDPOINT_TOLERANCE
            ) and existing.end.is_close_to(route.end, ENDPOINT_TOLERANCE):
                return existing
        return None

    def _discard(self, route: Route) -> None:
        self._routes = [r for r in self._routes if r.id != route.id]

    async def _accept(self, request: RouteRequest, route: Route) -> Route:
        async with self._lock:
            existing = self._find_duplicate(route)
            if existing is not None:
                logger.info(f"Duplicate of route {existing.id}, reusing it")
                self.cache.put(request, existing)
                return existing
            self._routes.append(route)

        if self.store is not None:
            try:
                await self.store.save(route)
            except asyncio.CancelledError:
                # No await between here and the raise, so the lock is not needed
                self._discard(route)
                raise
            except Exception as e:
                logger.error(f"Failed to persist route {route.id}: {e}")

        async with self._lock:
            self.cache.put(request, route)
        return route

    # =========================================================================
    # Working set
    # =========================================================================

    async def on_memory_pressure(self) -> int:
        """Trim the working set to the most recently created routes."""
        async with self._lock:
            if len(self._routes) <= self.working_set_limit:
                return 0
            keep = sorted(self._routes, key=lambda r: r.created_at, reverse=True)
            keep_ids = {r.id for r in keep[: self.working_set_limit]}
            removed = len(self._routes) - len(keep_ids)
            self._routes = [r for r in self._routes if r.id in keep_ids]

        logger.warning(f"Memory pressure: dropped {removed} routes from working set")
        return removed

    async def remove_route(self, route_id: UUID) -> bool:
        async with self._lock:
            before = len(self._routes)
            self._routes = [r for r in self._routes if r.id != route_id]
            return len(self._routes) != before

    async def clear_routes(self) -> None:
        async with self._lock:
            self._routes = []

    def recent_routes(self, limit: int = 10) -> List[Route]:
        return sorted(self._routes, key=lambda r: r.created_at, reverse=True)[:limit]

    def get_route(self, route_id: UUID) -> Optional[Route]:
        for route in self._routes:
            if route.id == route_id:
                return route
        return None

    async def load_saved_routes(self, limit: int = 50) -> List[Route]:
        """Replace the working set with the most recent persisted routes."""
        if self.store is None:
            return []
        routes = await self.store.fetch_recent(limit)
        async with self._lock:
            self._routes = list(routes)
        logger.info(f"Loaded {len(routes)} saved routes")
        return routes

    async def delete_route(self, route_id: UUID) -> bool:
        """Remove a route from the working set and the store."""
        removed = await self.remove_route(route_id)
        if self.store is not None:
            removed = await self.store.delete(route_id) or removed
        return removed

    async def toggle_favorite(self, route_id: UUID) -> Optional[Route]:
        """Flip the favourite flag, replacing both stored and in-memory copies."""
        updated = None
        if self.store is not None:
            updated = await self.store.toggle_favorite(route_id)

        async with self._lock:
            for i, route in enumerate(self._routes):
                if route.id != route_id:
                    continue
                if updated is None:
                    updated = route.model_copy(update={"is_favorite": not route.is_favorite})
                self._routes[i] = updated
                break

        return updated
