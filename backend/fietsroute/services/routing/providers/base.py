"""Routing provider interface."""

from typing import List, Protocol, Sequence, Union, runtime_checkable

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import BikeType, RawRoute, Route, RoutePreferences


@runtime_checkable
class RoutingProvider(Protocol):
    """A source of cycling routes.

    Implementations return either a finished ``Route`` or a list of
    ``RawRoute`` alternatives for the scoring engine, and raise
    ``NetworkError``, ``NoRouteFound`` or ``InvalidResponse`` on failure.
    """

    name: str
    is_offline: bool

    async def compute_route(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> Union[Route, List[RawRoute]]: ...
