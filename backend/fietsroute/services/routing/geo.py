"""Geometry helpers shared by providers, cache and coordinator."""

import math
from typing import List, Sequence, Tuple

from fietsroute.schemas.common import Coordinate

EARTH_RADIUS_M = 6371000

# Endpoint proximity tolerance in degrees (~11m).
ENDPOINT_TOLERANCE = 0.0001


def haversine(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def path_length(points: Sequence[Coordinate]) -> float:
    """Sum of haversine segment lengths along a path."""
    return sum(haversine(points[i - 1], points[i]) for i in range(1, len(points)))


def fingerprint(coord: Coordinate) -> Tuple[float, float]:
    """Round a coordinate to a ~1km bucket (0.01 degrees)."""
    return (round(coord.latitude, 2), round(coord.longitude, 2))


def sample_indices(count: int, max_points: int) -> List[int]:
    """Evenly spaced indices into a sequence, always keeping first and last."""
    if count <= max_points:
        return list(range(count))
    if max_points < 2:
        return [0]

    step = (count - 1) / (max_points - 1)
    indices = [round(i * step) for i in range(max_points)]
    indices[-1] = count - 1
    return indices


def anchor_polyline(
    polyline: List[Coordinate], start: Coordinate, end: Coordinate
) -> Tuple[List[Coordinate], bool, bool]:
    """Make sure a polyline begins at start and finishes at end.

    Returns the anchored polyline and whether a point was prepended/appended,
    so aligned per-point data (elevation) can be padded the same way.
    """
    if not polyline:
        return [start, end], True, True

    prepended = appended = False
    result = list(polyline)
    if not result[0].is_close_to(start, ENDPOINT_TOLERANCE):
        result.insert(0, start)
        prepended = True
    if not result[-1].is_close_to(end, ENDPOINT_TOLERANCE):
        result.append(end)
        appended = True
    return result, prepended, appended


def decode_polyline(encoded: str, precision: int = 6) -> List[Coordinate]:
    """Decode an encoded polyline string into coordinates.

    Valhalla uses precision 6 by default.
    """
    coordinates = []
    index = 0
    lat = 0
    lng = 0
    factor = 10 ** precision

    while index < len(encoded):
        # Decode latitude
        shift = 0
        result = 0
        while True:
            b = ord(encoded[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        dlat = ~(result >> 1) if result & 1 else result >> 1
        lat += dlat

        # Decode longitude
        shift = 0
        result = 0
        while True:
            b = ord(encoded[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        dlng = ~(result >> 1) if result & 1 else result >> 1
        lng += dlng

        coordinates.append(Coordinate(latitude=lat / factor, longitude=lng / factor))

    return coordinates


def encode_polyline(points: Sequence[Coordinate], precision: int = 6) -> str:
    """Encode coordinates into a polyline string (inverse of decode_polyline)."""
    factor = 10 ** precision
    output = []
    prev_lat = 0
    prev_lng = 0

    for point in points:
        lat = int(round(point.latitude * factor))
        lng = int(round(point.longitude * factor))
        for delta in (lat - prev_lat, lng - prev_lng):
            value = ~(delta << 1) if delta < 0 else delta << 1
            while value >= 0x20:
                output.append(chr((0x20 | (value & 0x1F)) + 63))
                value >>= 5
            output.append(chr(value + 63))
        prev_lat, prev_lng = lat, lng

    return "".join(output)
