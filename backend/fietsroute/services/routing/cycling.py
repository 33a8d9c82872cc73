"""Cycling model shared by all providers.

Holds the average speed table, the difficulty and surface classifiers and the
conversion of a provider-level ``RawRoute`` into a ``Route``.
"""

from typing import List, Optional, Sequence, Tuple

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    AVERAGE_SPEED_KMH,
    BikeType,
    ManeuverType,
    RawRoute,
    Route,
    RouteDifficulty,
    RouteInstruction,
    RouteSurface,
)
from fietsroute.services.routing.geo import anchor_polyline, sample_indices

MAX_POLYLINE_POINTS = 300

START_INSTRUCTION = "Start route"
STRAIGHT_INSTRUCTION = "Ga rechtdoor"
DESTINATION_INSTRUCTION = "Bestemming bereikt"


def cycling_duration(distance_m: float, bike_type: BikeType) -> float:
    """Estimated riding time in seconds for a distance at the bike type's speed."""
    speed_ms = AVERAGE_SPEED_KMH[bike_type] * 1000 / 3600
    return distance_m / speed_ms


def classify_difficulty(
    distance_m: float, ascent_m: float, bike_type: BikeType
) -> RouteDifficulty:
    """Classify a route by distance, with climbing taken into account for MTB."""
    km = distance_m / 1000

    if bike_type == BikeType.ELECTRIC:
        if km < 10:
            return RouteDifficulty.EASY
        if km < 30:
            return RouteDifficulty.MODERATE
        return RouteDifficulty.HARD

    if bike_type == BikeType.ROAD:
        if km < 20:
            return RouteDifficulty.EASY
        if km < 50:
            return RouteDifficulty.MODERATE
        if km < 100:
            return RouteDifficulty.HARD
        return RouteDifficulty.EXPERT

    if bike_type == BikeType.MOUNTAIN:
        elevation_per_km = ascent_m / km if km > 0 else 0
        if elevation_per_km > 50:
            return RouteDifficulty.HARD
        if km < 15:
            return RouteDifficulty.EASY
        if km < 35:
            return RouteDifficulty.MODERATE
        return RouteDifficulty.HARD

    if bike_type == BikeType.CARGO:
        if km < 5:
            return RouteDifficulty.EASY
        if km < 15:
            return RouteDifficulty.MODERATE
        return RouteDifficulty.HARD

    if km < 10:
        return RouteDifficulty.EASY
    if km < 25:
        return RouteDifficulty.MODERATE
    return RouteDifficulty.HARD


def classify_surface(bike_type: BikeType) -> RouteSurface:
    if bike_type == BikeType.MOUNTAIN:
        return RouteSurface.MIXED
    return RouteSurface.ASPHALT


def calculate_elevation_stats(
    elevations: Sequence[float], interval: float = 30
) -> Tuple[float, float, float]:
    """Calculate elevation gain, loss, and max grade from elevation data.

    Args:
        elevations: List of elevation values in meters
        interval: Distance between elevation points in meters

    Returns:
        Tuple of (elevation_gain, elevation_loss, max_grade_percent)
    """
    if not elevations or len(elevations) < 2:
        return 0, 0, 0

    elevation_gain = 0
    elevation_loss = 0
    max_grade = 0

    for i in range(1, len(elevations)):
        diff = elevations[i] - elevations[i - 1]

        if diff > 0:
            elevation_gain += diff
        else:
            elevation_loss += abs(diff)

        if interval > 0:
            grade = abs(diff) / interval * 100
            max_grade = max(max_grade, grade)

    return elevation_gain, elevation_loss, max_grade


def _build_instructions(
    raw: RawRoute, start: Coordinate, end: Coordinate
) -> List[RouteInstruction]:
    instructions = []
    last_index = len(raw.steps) - 1

    for i, step in enumerate(raw.steps):
        coordinate = step.coordinate
        if coordinate is None:
            coordinate = end if i == last_index else start
        instructions.append(
            RouteInstruction(
                instruction=step.instruction,
                distance=max(0.0, step.distance),
                coordinate=coordinate,
                type=step.maneuver,
            )
        )

    if not instructions:
        instructions.append(
            RouteInstruction(
                instruction=START_INSTRUCTION,
                distance=raw.distance,
                coordinate=start,
                type=ManeuverType.START,
            )
        )

    if instructions[-1].type != ManeuverType.DESTINATION:
        instructions.append(
            RouteInstruction(
                instruction=DESTINATION_INSTRUCTION,
                distance=0,
                coordinate=end,
                type=ManeuverType.DESTINATION,
            )
        )

    return instructions


def route_from_raw(
    raw: RawRoute,
    start: Coordinate,
    end: Coordinate,
    waypoints: Sequence[Coordinate],
    bike_type: BikeType,
    provider: Optional[str] = None,
    max_points: int = MAX_POLYLINE_POINTS,
) -> Route:
    """Convert a provider alternative into a Route.

    The polyline is anchored to the requested endpoints and sampled down to
    ``max_points``. Elevation survives only when it has one sample per
    polyline point; it is padded and sampled alongside the polyline.
    """
    elevation = list(raw.elevation) if len(raw.elevation) == len(raw.polyline) else []

    polyline, prepended, appended = anchor_polyline(list(raw.polyline), start, end)
    if elevation:
        if prepended:
            elevation.insert(0, elevation[0])
        if appended:
            elevation.append(elevation[-1])

    indices = sample_indices(len(polyline), max_points)
    polyline = [polyline[i] for i in indices]
    if elevation:
        elevation = [elevation[i] for i in indices]

    ascent = raw.ascent
    if not ascent and raw.elevation:
        ascent, _, _ = calculate_elevation_stats(raw.elevation)

    return Route(
        start=start,
        end=end,
        waypoints=list(waypoints),
        distance=raw.distance,
        duration=cycling_duration(raw.distance, bike_type),
        elevation=elevation,
        instructions=_build_instructions(raw, start, end),
        polyline=polyline,
        difficulty=classify_difficulty(raw.distance, ascent, bike_type),
        surface=classify_surface(bike_type),
        bike_type=bike_type,
        provider=provider,
    )
