"""Straight-line route estimate for when no routing service is reachable."""

import logging
from typing import Sequence

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    BikeType,
    ManeuverType,
    Route,
    RouteInstruction,
    RoutePreferences,
)
from fietsroute.services.routing.cycling import (
    DESTINATION_INSTRUCTION,
    START_INSTRUCTION,
    STRAIGHT_INSTRUCTION,
    classify_difficulty,
    classify_surface,
    cycling_duration,
)
from fietsroute.services.routing.geo import haversine, path_length, sample_indices

logger = logging.getLogger(__name__)


class OfflineEstimator:
    """Builds a route from straight segments through start, waypoints and end."""

    name = "offline"
    is_offline = True

    def __init__(self, max_points: int = 300):
        self.max_points = max_points

    async def compute_route(
        self,
        start: Coordinate,
        end: Coordinate,
        waypoints: Sequence[Coordinate],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> Route:
        points = [start, *waypoints, end]
        distance = path_length(points)

        instructions = [
            RouteInstruction(
                instruction=START_INSTRUCTION,
                distance=haversine(points[0], points[1]),
                coordinate=start,
                type=ManeuverType.START,
            )
        ]
        for i, waypoint in enumerate(waypoints, start=1):
            instructions.append(
                RouteInstruction(
                    instruction=STRAIGHT_INSTRUCTION,
                    distance=haversine(points[i], points[i + 1]),
                    coordinate=waypoint,
                    type=ManeuverType.STRAIGHT,
                )
            )
        instructions.append(
            RouteInstruction(
                instruction=DESTINATION_INSTRUCTION,
                distance=0,
                coordinate=end,
                type=ManeuverType.DESTINATION,
            )
        )

        polyline = [points[i] for i in sample_indices(len(points), self.max_points)]

        logger.info(
            f"Offline estimate: {distance:.0f}m through {len(waypoints)} waypoints"
        )

        return Route(
            start=start,
            end=end,
            waypoints=list(waypoints),
            distance=distance,
            duration=cycling_duration(distance, bike_type),
            elevation=[],
            instructions=instructions,
            polyline=polyline,
            difficulty=classify_difficulty(distance, 0, bike_type),
            surface=classify_surface(bike_type),
            bike_type=bike_type,
            provider=self.name,
        )
