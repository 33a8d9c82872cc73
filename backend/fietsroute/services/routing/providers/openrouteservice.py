"""OpenRouteService cycling directions provider."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    BikeType,
    ManeuverType,
    RawRoute,
    RawStep,
    RoutePreferences,
)
from fietsroute.services.routing.errors import (
    InvalidResponse,
    NetworkError,
    NoRouteFound,
)

logger = logging.getLogger(__name__)


# ORS directions profile per bike type
ORS_PROFILES = {
    BikeType.CITY: "cycling-regular",
    BikeType.ELECTRIC: "cycling-regular",
    BikeType.CARGO: "cycling-regular",
    BikeType.MOUNTAIN: "cycling-mountain",
    BikeType.ROAD: "cycling-road",
}

ORS_PREFERENCES = {
    BikeType.CITY: "fastest",
    BikeType.ROAD: "fastest",
    BikeType.ELECTRIC: "fastest",
    BikeType.MOUNTAIN: "shortest",
    BikeType.CARGO: "recommended",
}

ORS_AVOID_FEATURES = {
    BikeType.CITY: ["steps"],
    BikeType.ROAD: ["steps", "ferries"],
    BikeType.ELECTRIC: ["steps"],
    BikeType.MOUNTAIN: ["ferries"],
    BikeType.CARGO: ["steps", "fords"],
}

# ORS instruction type codes to our maneuver types
ORS_MANEUVER_MAP = {
    0: ManeuverType.TURN_LEFT,
    1: ManeuverType.TURN_RIGHT,
    2: ManeuverType.TURN_LEFT,  # Sharp left
    3: ManeuverType.TURN_RIGHT,  # Sharp right
    4: ManeuverType.TURN_LEFT,  # Slight left
    5: ManeuverType.TURN_RIGHT,  # Slight right
    6: ManeuverType.STRAIGHT,
    7: ManeuverType.ROUNDABOUT,  # Enter roundabout
    8: ManeuverType.ROUNDABOUT,  # Exit roundabout
    9: ManeuverType.U_TURN,
    10: ManeuverType.DESTINATION,
    11: ManeuverType.START,
    12: ManeuverType.TURN_LEFT,  # Keep left
    13: ManeuverType.TURN_RIGHT,  # Keep right
}


class OpenRouteServiceProvider:
    """Remote cycling directions from OpenRouteService."""

    name = "openrouteservice"
    is_offline = False

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def compute_route(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> List[RawRoute]:
        if not self.api_key:
            raise NetworkError("OpenRouteService API key is not configured")

        profile = ORS_PROFILES[bike_type]
        body = self._build_request(start, end, waypoints, bike_type)

        try:
            response = await self.client.post(
                f"{self.base_url}/v2/directions/{profile}/geojson",
                json=body,
                headers={"Authorization": self.api_key},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"OpenRouteService request failed: {e}") from e

        if response.status_code != 200:
            raise NetworkError(
                f"OpenRouteService returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"OpenRouteService returned invalid JSON: {e}") from e

        return self._parse_response(data)

    def _build_request(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
    ) -> Dict[str, Any]:
        coordinates = [start.as_lon_lat()]
        coordinates.extend(w.as_lon_lat() for w in waypoints if w.is_valid)
        coordinates.append(end.as_lon_lat())

        return {
            "coordinates": coordinates,
            "elevation": True,
            "instructions": True,
            "preference": ORS_PREFERENCES[bike_type],
            "options": {"avoid_features": ORS_AVOID_FEATURES[bike_type]},
        }

    def _parse_response(self, data: Any) -> List[RawRoute]:
        if not isinstance(data, dict):
            raise InvalidResponse("OpenRouteService response is not an object")

        features = data.get("features")
        if features is None:
            raise InvalidResponse("OpenRouteService response has no features")
        if not features:
            raise NoRouteFound("OpenRouteService found no route")

        try:
            return [self._parse_feature(f) for f in features]
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Malformed OpenRouteService feature: {e}") from e

    def _parse_feature(self, feature: Dict[str, Any]) -> RawRoute:
        properties = feature["properties"]
        summary = properties["summary"]

        polyline = []
        elevation = []
        for coord in feature["geometry"]["coordinates"]:
            polyline.append(Coordinate(latitude=coord[1], longitude=coord[0]))
            if len(coord) > 2:
                elevation.append(float(coord[2]))

        steps = []
        for segment in properties.get("segments", []):
            for step in segment.get("steps", []):
                way_points = step.get("way_points") or [0]
                index = way_points[0]
                coordinate = polyline[index] if 0 <= index < len(polyline) else None
                steps.append(
                    RawStep(
                        instruction=step.get("instruction", ""),
                        distance=step.get("distance", 0),
                        coordinate=coordinate,
                        maneuver=ORS_MANEUVER_MAP.get(
                            step.get("type"), ManeuverType.STRAIGHT
                        ),
                    )
                )

        if len(elevation) != len(polyline):
            elevation = []

        return RawRoute(
            distance=summary.get("distance", 0),
            duration=summary.get("duration", 0),
            steps=steps,
            polyline=polyline,
            elevation=elevation,
            ascent=properties.get("ascent", 0),
            descent=properties.get("descent", 0),
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
