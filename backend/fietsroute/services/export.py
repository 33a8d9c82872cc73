"""Route export: GPX track logs and the JSON data export."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import gpxpy
import gpxpy.gpx

from fietsroute.schemas.routing import Route
from fietsroute.services.routing.geo import haversine

GPX_CREATOR = "FietsRoute"
EXPORT_VERSION = "1.0"


def export_gpx(route: Route) -> str:
    """Create a GPX document with one track for a route.

    Point timestamps are spread over the route duration in proportion to
    the distance covered, starting at the route's creation time.
    """
    gpx = gpxpy.gpx.GPX()
    gpx.creator = GPX_CREATOR
    gpx.name = route.name
    gpx.description = (
        f"{route.formatted_distance}, {route.formatted_duration}, "
        f"{route.difficulty.value}"
    )

    gpx_track = gpxpy.gpx.GPXTrack()
    gpx_track.name = route.name
    gpx_track.type = route.bike_type.value
    gpx.tracks.append(gpx_track)

    gpx_segment = gpxpy.gpx.GPXTrackSegment()
    gpx_track.segments.append(gpx_segment)

    points = route.polyline
    elevation = route.elevation if len(route.elevation) == len(points) else []

    cumulative = [0.0]
    for i in range(1, len(points)):
        cumulative.append(cumulative[-1] + haversine(points[i - 1], points[i]))
    total = cumulative[-1] if cumulative else 0.0

    for i, point in enumerate(points):
        fraction = cumulative[i] / total if total > 0 else 0.0
        gpx_segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                point.latitude,
                point.longitude,
                elevation=elevation[i] if elevation else None,
                time=route.created_at + timedelta(seconds=route.duration * fraction),
            )
        )

    return gpx.to_xml()


def _route_summary(route: Route) -> Dict[str, Any]:
    return {
        "id": str(route.id),
        "distance": route.distance,
        "duration": route.duration,
        "created_at": route.created_at.isoformat(),
        "start_lat": route.start.latitude,
        "start_lng": route.start.longitude,
        "end_lat": route.end.latitude,
        "end_lng": route.end.longitude,
    }


def export_routes_json(
    routes: Iterable[Route],
    favorites: Iterable[Route] = (),
    settings: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Serialize routes, favourite ids and settings into the data export document."""
    document = {
        "export_date": (now or datetime.now(timezone.utc)).isoformat(),
        "app_version": EXPORT_VERSION,
        "routes": [_route_summary(r) for r in routes],
        "favorites": [str(r.id) for r in favorites],
        "settings": settings or {},
    }
    return json.dumps(document, indent=2)
