"""Routing request, route and instruction schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fietsroute.schemas.common import Coordinate


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BikeType(str, Enum):
    """Type of bicycle a route is planned for."""

    CITY = "city"
    MOUNTAIN = "mountain"
    ROAD = "road"
    ELECTRIC = "electric"
    CARGO = "cargo"


class RouteDifficulty(str, Enum):
    """Difficulty classification of a route."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"
    EXPERT = "expert"


class RouteSurface(str, Enum):
    """Dominant surface along a route."""

    ASPHALT = "asphalt"
    GRAVEL = "gravel"
    DIRT = "dirt"
    MIXED = "mixed"


class ManeuverType(str, Enum):
    """Types of navigation maneuvers."""

    START = "start"
    TURN_LEFT = "turnLeft"
    TURN_RIGHT = "turnRight"
    STRAIGHT = "straight"
    DESTINATION = "destination"
    ROUNDABOUT = "roundabout"
    U_TURN = "uTurn"


class RoutePreferences(BaseModel):
    """User preferences for route calculation."""

    model_config = ConfigDict(frozen=True)

    avoid_highways: bool = Field(default=True, description="Avoid highways")
    avoid_tunnels: bool = Field(default=False, description="Avoid tunnels")
    prefer_bike_paths: bool = Field(
        default=True, description="Prefer dedicated cycle paths"
    )
    prefer_nature: bool = Field(default=False, description="Prefer scenic routes")
    max_distance_km: float = Field(default=50.0, ge=0, description="Maximum distance")
    max_elevation_m: float = Field(
        default=200.0, ge=0, description="Maximum elevation gain"
    )


class RouteRequest(BaseModel):
    """A single routing request, created per user action."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    start: Coordinate
    end: Coordinate
    waypoints: List[Coordinate] = Field(default_factory=list)
    bike_type: BikeType = BikeType.CITY
    preferences: RoutePreferences = Field(default_factory=RoutePreferences)
    timestamp: datetime = Field(default_factory=utc_now)


class RouteInstruction(BaseModel):
    """Turn-by-turn navigation instruction."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    instruction: str = Field(..., description="Human-readable instruction")
    distance: float = Field(..., ge=0, description="Distance to next maneuver (m)")
    coordinate: Coordinate = Field(..., description="Location of maneuver")
    type: ManeuverType = Field(..., description="Maneuver type")


# Average cycling speed per bike type in km/h.
AVERAGE_SPEED_KMH = {
    BikeType.CITY: 15.0,
    BikeType.MOUNTAIN: 12.0,
    BikeType.ROAD: 25.0,
    BikeType.ELECTRIC: 22.0,
    BikeType.CARGO: 12.0,
}


class Route(BaseModel):
    """A computed cycling route. Read-only once created."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    start: Coordinate
    end: Coordinate
    waypoints: List[Coordinate] = Field(default_factory=list)
    distance: float = Field(..., ge=0, description="Total distance in meters")
    duration: float = Field(..., ge=0, description="Total duration in seconds")
    elevation: List[float] = Field(
        default_factory=list, description="Elevation samples aligned with polyline"
    )
    instructions: List[RouteInstruction] = Field(default_factory=list)
    polyline: List[Coordinate] = Field(default_factory=list)
    difficulty: RouteDifficulty = RouteDifficulty.EASY
    surface: RouteSurface = RouteSurface.ASPHALT
    bike_type: BikeType = BikeType.CITY
    created_at: datetime = Field(default_factory=utc_now)
    is_favorite: bool = False
    provider: Optional[str] = Field(
        default=None, description="Name of the provider that produced the route"
    )

    @computed_field
    @property
    def formatted_distance(self) -> str:
        if self.distance < 1000:
            return f"{int(self.distance)}m"
        return f"{self.distance / 1000:.1f} km"

    @computed_field
    @property
    def formatted_duration(self) -> str:
        hours = int(self.duration) // 3600
        minutes = int(self.duration) % 3600 // 60
        if hours > 0:
            return f"{hours}u {minutes}min"
        return f"{minutes} min"

    @computed_field
    @property
    def average_speed(self) -> float:
        """Average speed in km/h for the bike type the route was planned for."""
        return AVERAGE_SPEED_KMH[self.bike_type]

    @computed_field
    @property
    def elevation_gain(self) -> float:
        if not self.elevation:
            return 0.0
        return max(self.elevation) - min(self.elevation)

    @computed_field
    @property
    def name(self) -> str:
        return f"Route {self.formatted_distance} • {self.formatted_duration}"


class RawStep(BaseModel):
    """A provider step before conversion into a RouteInstruction."""

    instruction: str = ""
    distance: float = 0.0
    coordinate: Optional[Coordinate] = None
    maneuver: ManeuverType = ManeuverType.STRAIGHT


class RawRoute(BaseModel):
    """One alternative returned by a provider that yields several candidates."""

    distance: float = Field(..., ge=0, description="Distance in meters")
    duration: float = Field(..., ge=0, description="Duration in seconds")
    steps: List[RawStep] = Field(default_factory=list)
    polyline: List[Coordinate] = Field(default_factory=list)
    elevation: List[float] = Field(default_factory=list)
    ascent: float = 0.0
    descent: float = 0.0


class CachedRoute(BaseModel):
    """A route held by the route cache together with its originating request."""

    route: Route
    request: RouteRequest
    cached_at: datetime = Field(default_factory=utc_now)


class RouteCalculationRequest(BaseModel):
    """Request body for route calculation over HTTP."""

    start: Coordinate = Field(..., description="Starting point")
    end: Coordinate = Field(..., description="Destination")
    waypoints: List[Coordinate] = Field(default_factory=list)
    bike_type: Optional[BikeType] = Field(
        default=None, description="Bike type, defaults to the configured one"
    )
    preferences: Optional[RoutePreferences] = Field(
        default=None, description="Route preferences, default to the configured ones"
    )
