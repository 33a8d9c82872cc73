# Pydantic schemas
from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    BikeType,
    CachedRoute,
    ManeuverType,
    RawRoute,
    RawStep,
    Route,
    RouteCalculationRequest,
    RouteDifficulty,
    RouteInstruction,
    RoutePreferences,
    RouteRequest,
    RouteSurface,
)

__all__ = [
    "Coordinate",
    "BikeType",
    "CachedRoute",
    "ManeuverType",
    "RawRoute",
    "RawStep",
    "Route",
    "RouteCalculationRequest",
    "RouteDifficulty",
    "RouteInstruction",
    "RoutePreferences",
    "RouteRequest",
    "RouteSurface",
]
