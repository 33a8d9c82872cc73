"""Valhalla map service provider, used when the cycling directions API fails."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    AVERAGE_SPEED_KMH,
    BikeType,
    ManeuverType,
    RawRoute,
    RawStep,
    RoutePreferences,
)
from fietsroute.services.routing.cycling import calculate_elevation_stats
from fietsroute.services.routing.errors import (
    InvalidResponse,
    NetworkError,
    NoRouteFound,
)
from fietsroute.services.routing.geo import decode_polyline

logger = logging.getLogger(__name__)


# Mapping from Valhalla maneuver types to our types
VALHALLA_MANEUVER_MAP = {
    1: ManeuverType.START,
    2: ManeuverType.START,  # Start right
    3: ManeuverType.START,  # Start left
    4: ManeuverType.DESTINATION,
    5: ManeuverType.DESTINATION,  # Destination right
    6: ManeuverType.DESTINATION,  # Destination left
    7: ManeuverType.STRAIGHT,  # Becomes
    8: ManeuverType.STRAIGHT,  # Continue
    9: ManeuverType.TURN_RIGHT,  # Slight right
    10: ManeuverType.TURN_RIGHT,
    11: ManeuverType.TURN_RIGHT,  # Sharp right
    12: ManeuverType.U_TURN,  # U-turn right
    13: ManeuverType.U_TURN,  # U-turn left
    14: ManeuverType.TURN_LEFT,  # Sharp left
    15: ManeuverType.TURN_LEFT,
    16: ManeuverType.TURN_LEFT,  # Slight left
    17: ManeuverType.STRAIGHT,  # Ramp straight
    18: ManeuverType.TURN_RIGHT,  # Ramp right
    19: ManeuverType.TURN_LEFT,  # Ramp left
    20: ManeuverType.TURN_RIGHT,  # Exit right
    21: ManeuverType.TURN_LEFT,  # Exit left
    22: ManeuverType.STRAIGHT,  # Stay straight
    23: ManeuverType.TURN_RIGHT,  # Stay right
    24: ManeuverType.TURN_LEFT,  # Stay left
    25: ManeuverType.STRAIGHT,  # Merge
    26: ManeuverType.ROUNDABOUT,  # Enter roundabout
    27: ManeuverType.ROUNDABOUT,  # Exit roundabout
}

VALHALLA_BICYCLE_TYPES = {
    BikeType.CITY: "City",
    BikeType.CARGO: "City",
    BikeType.ELECTRIC: "Hybrid",
    BikeType.ROAD: "Road",
    BikeType.MOUNTAIN: "Mountain",
}

# Valhalla status codes meaning "reachable, but no path"
NO_ROUTE_ERROR_CODES = {442, 443}

ELEVATION_INTERVAL = 30


class ValhallaProvider:
    """Bicycle routing through a Valhalla instance, with alternates."""

    name = "valhalla"
    is_offline = False

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.valhalla_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def compute_route(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> List[RawRoute]:
        valhalla_request = self._build_valhalla_request(
            start, end, waypoints, bike_type, preferences
        )

        try:
            response = await self.client.post(
                f"{self.valhalla_url}/route",
                json=valhalla_request,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Valhalla request failed: {e}") from e

        if response.status_code >= 400:
            self._raise_for_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"Valhalla returned invalid JSON: {e}") from e

        return self._parse_valhalla_response(data)

    def _raise_for_error(self, response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            body = {}

        error_code = body.get("error_code") if isinstance(body, dict) else None
        message = body.get("error", "") if isinstance(body, dict) else ""
        if error_code in NO_ROUTE_ERROR_CODES or "no path could be found" in str(message).lower():
            raise NoRouteFound(f"Valhalla found no path: {message}")

        raise NetworkError(f"Valhalla returned HTTP {response.status_code}: {message}")

    def _build_valhalla_request(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> dict:
        """Build Valhalla API request for a bicycle route."""
        locations = [{"lat": start.latitude, "lon": start.longitude, "type": "break"}]
        locations.extend(
            {"lat": w.latitude, "lon": w.longitude, "type": "through"}
            for w in waypoints
            if w.is_valid
        )
        locations.append({"lat": end.latitude, "lon": end.longitude, "type": "break"})

        return {
            "locations": locations,
            "costing": "bicycle",
            "costing_options": {
                "bicycle": self._build_costing_options(bike_type, preferences)
            },
            "directions_options": {
                "units": "kilometers",
                "language": "nl-NL",
            },
            "alternates": 2,
            "elevation_interval": ELEVATION_INTERVAL,
            "format": "json",
        }

    def _build_costing_options(
        self, bike_type: BikeType, preferences: RoutePreferences
    ) -> dict:
        """Build Valhalla costing options from bike type and preferences.

        use_roads near 0 keeps the route on cycleways; use_hills near 0
        avoids climbs.
        """
        options = {
            "bicycle_type": VALHALLA_BICYCLE_TYPES[bike_type],
            "cycling_speed": AVERAGE_SPEED_KMH[bike_type],
            "use_roads": 0.5,
            "use_hills": 0.5,
            "avoid_bad_surfaces": 0.5,
        }

        if bike_type == BikeType.ROAD:
            options["use_roads"] = 0.7
            options["avoid_bad_surfaces"] = 0.9
        elif bike_type == BikeType.MOUNTAIN:
            options["use_hills"] = 0.8
            options["avoid_bad_surfaces"] = 0.0
        elif bike_type == BikeType.CARGO:
            options["use_hills"] = 0.2
            options["avoid_bad_surfaces"] = 0.7

        if preferences.avoid_highways:
            options["use_roads"] = min(options["use_roads"], 0.25)

        if preferences.prefer_bike_paths:
            options["use_roads"] = min(options["use_roads"], 0.1)

        if preferences.prefer_nature:
            options["use_living_streets"] = 0.8

        return options

    def _parse_valhalla_response(self, data: Any) -> List[RawRoute]:
        """Parse the main trip and every alternate into raw routes."""
        if not isinstance(data, dict):
            raise InvalidResponse("Valhalla response is not an object")

        trips = []
        if data.get("trip"):
            trips.append(data["trip"])
        alternates = data.get("alternates")
        if not isinstance(alternates, list):
            alternates = []
        for alternate in alternates:
            if isinstance(alternate, dict) and alternate.get("trip"):
                trips.append(alternate["trip"])

        if not trips:
            raise NoRouteFound("Valhalla returned no trips")

        try:
            routes = [self._parse_trip(trip) for trip in trips]
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Malformed Valhalla trip: {e}") from e

        routes = [r for r in routes if r is not None]
        if not routes:
            raise NoRouteFound("Valhalla trips have no legs")
        return routes

    def _parse_trip(self, trip: Dict[str, Any]) -> Optional[RawRoute]:
        legs = trip.get("legs", [])
        if not legs:
            return None

        summary = trip.get("summary", {})
        polyline = []
        elevations = []
        steps = []

        for leg in legs:
            leg_coords = decode_polyline(leg.get("shape", ""))
            offset = len(polyline)
            polyline.extend(leg_coords)
            elevations.extend(leg.get("elevation", []))

            for m in leg.get("maneuvers", []):
                steps.append(self._parse_maneuver(m, polyline, offset))

        ascent, descent, _ = calculate_elevation_stats(elevations, ELEVATION_INTERVAL)
        ascent = summary.get("total_elevation_gain", ascent)
        descent = summary.get("total_elevation_loss", descent)

        return RawRoute(
            distance=summary.get("length", 0) * 1000,  # km to m
            duration=summary.get("time", 0),
            steps=steps,
            polyline=polyline,
            elevation=elevations if len(elevations) == len(polyline) else [],
            ascent=ascent,
            descent=descent,
        )

    def _parse_maneuver(
        self, m: dict, polyline: List[Coordinate], offset: int
    ) -> RawStep:
        """Parse a Valhalla maneuver, locating it on the decoded shape."""
        index = offset + m.get("begin_shape_index", 0)
        coordinate = polyline[index] if 0 <= index < len(polyline) else None

        return RawStep(
            instruction=m.get("instruction", ""),
            distance=m.get("length", 0) * 1000,
            coordinate=coordinate,
            maneuver=VALHALLA_MANEUVER_MAP.get(m.get("type"), ManeuverType.STRAIGHT),
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
