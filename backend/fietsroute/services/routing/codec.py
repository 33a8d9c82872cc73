"""Route storage codec.

Routes are stored as an envelope of scalar fields plus three independently
encoded sub-payloads (polyline, instructions, elevation). Two historical
layouts exist:

* current: ``FRB\\x02`` magic followed by a pickle of plain builtins, with each
  sub-payload itself a pickled list;
* legacy: a JSON object using the old entity attribute names, with each
  sub-payload stored as JSON array text.

Old binary rows written before the magic was introduced are bare pickles and
are still readable. Writes always produce the current layout.
"""

import io
import json
import logging
import pickle
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    BikeType,
    ManeuverType,
    Route,
    RouteDifficulty,
    RouteInstruction,
    RouteSurface,
)
from fietsroute.services.routing.errors import InvalidResponse, UnrecognizedFormat

logger = logging.getLogger(__name__)

MAGIC = b"FRB\x02"
PICKLE_PROTOCOL = 4

DEFAULT_DIFFICULTY = RouteDifficulty.MODERATE
DEFAULT_SURFACE = RouteSurface.MIXED
DEFAULT_BIKE_TYPE = BikeType.CITY

# Scalar field name -> legacy entity attribute name
LEGACY_KEYS = {
    "id": "id",
    "start_lat": "startLatitude",
    "start_lng": "startLongitude",
    "end_lat": "endLatitude",
    "end_lng": "endLongitude",
    "waypoints": "waypoints",
    "distance": "distance",
    "duration": "duration",
    "difficulty": "difficulty",
    "surface": "surface",
    "bike_type": "bikeType",
    "created_at": "createdAt",
    "is_favorite": "isFavorite",
    "provider": "provider",
    "polyline": "polylineData",
    "instructions": "instructionsData",
    "elevation": "elevationData",
}


class _BuiltinsUnpickler(pickle.Unpickler):
    """Unpickler that refuses to resolve any global.

    Lists, dicts, tuples, strings, numbers, booleans and None are encoded by
    pickle opcodes directly, so the stored payloads never need a global.
    """

    def find_class(self, module, name):
        raise pickle.UnpicklingError(f"global '{module}.{name}' is not allowed")


def _restricted_loads(data: bytes) -> Any:
    try:
        return _BuiltinsUnpickler(io.BytesIO(data)).load()
    except Exception as e:
        raise InvalidResponse(f"Binary payload could not be read: {e}") from e


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# Sub-payload decoding
# =============================================================================


def _load_sub_payload(data: Any) -> list:
    """Parse a sub-payload as a JSON array first, then as a restricted pickle."""
    if isinstance(data, list):
        return data
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not isinstance(data, (bytes, bytearray)):
        raise InvalidResponse(f"Unsupported sub-payload type {type(data).__name__}")

    try:
        parsed = json.loads(data)
    except ValueError:
        parsed = None
    else:
        if isinstance(parsed, list):
            return parsed

    parsed = _restricted_loads(bytes(data))
    if not isinstance(parsed, (list, tuple)):
        raise InvalidResponse("Sub-payload is not a list")
    return list(parsed)


def _coordinate_from_record(item: Any) -> Optional[Coordinate]:
    if isinstance(item, dict):
        lat = item.get("lat", item.get("latitude"))
        lng = item.get("lng", item.get("longitude"))
    elif isinstance(item, (list, tuple)) and len(item) == 2:
        lat, lng = item
    else:
        return None

    if not (_is_number(lat) and _is_number(lng)):
        return None
    return Coordinate(latitude=float(lat), longitude=float(lng))


def decode_polyline(data: Any) -> List[Coordinate]:
    points = []
    for item in _load_sub_payload(data):
        coordinate = _coordinate_from_record(item)
        if coordinate is not None:
            points.append(coordinate)
    return points


def decode_elevation(data: Any) -> List[float]:
    return [float(v) for v in _load_sub_payload(data) if _is_number(v)]


def _instruction_from_record(item: Any) -> Optional[RouteInstruction]:
    if not isinstance(item, dict):
        return None

    coordinate = _coordinate_from_record(item.get("coordinate", item))
    text = item.get("instruction")
    distance = item.get("distance")
    if coordinate is None or not isinstance(text, str) or not _is_number(distance):
        return None

    try:
        maneuver = ManeuverType(item.get("type"))
    except ValueError:
        return None

    try:
        instruction_id = UUID(str(item["id"])) if item.get("id") else uuid4()
    except ValueError:
        instruction_id = uuid4()

    return RouteInstruction(
        id=instruction_id,
        instruction=text,
        distance=max(0.0, float(distance)),
        coordinate=coordinate,
        type=maneuver,
    )


def decode_instructions(data: Any) -> List[RouteInstruction]:
    instructions = []
    for item in _load_sub_payload(data):
        instruction = _instruction_from_record(item)
        if instruction is not None:
            instructions.append(instruction)
    return instructions


# =============================================================================
# Sub-payload encoding (current format)
# =============================================================================


def encode_polyline(points: List[Coordinate]) -> bytes:
    return pickle.dumps(
        [(p.latitude, p.longitude) for p in points], protocol=PICKLE_PROTOCOL
    )


def encode_instructions(instructions: List[RouteInstruction]) -> bytes:
    records = [
        {
            "id": str(i.id),
            "instruction": i.instruction,
            "distance": i.distance,
            "lat": i.coordinate.latitude,
            "lng": i.coordinate.longitude,
            "type": i.type.value,
        }
        for i in instructions
    ]
    return pickle.dumps(records, protocol=PICKLE_PROTOCOL)


def encode_elevation(elevation: List[float]) -> bytes:
    return pickle.dumps([float(v) for v in elevation], protocol=PICKLE_PROTOCOL)


# =============================================================================
# Scalars
# =============================================================================


def _enum_or_default(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        if value is not None:
            logger.warning(f"Unknown {enum_cls.__name__} value {value!r}, using {default.value}")
        return default


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Unparseable created_at {value!r}, using now")
            return datetime.now(timezone.utc)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if _is_number(value):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Out of range created_at {value!r}, using now")
            return datetime.now(timezone.utc)
    return datetime.now(timezone.utc)


def _require_coordinate(lat: Any, lng: Any) -> Coordinate:
    if not (_is_number(lat) and _is_number(lng)):
        raise UnrecognizedFormat("Route envelope is missing endpoint coordinates")
    return Coordinate(latitude=float(lat), longitude=float(lng))


def _decode_field(name: str, decoder: Callable[[Any], list], data: Any) -> list:
    """Decode one sub-payload, substituting an empty list on failure."""
    if data is None:
        return []
    try:
        return decoder(data)
    except InvalidResponse as e:
        logger.warning(f"Dropping undecodable {name} payload: {e.message}")
        return []


def route_from_fields(fields: Dict[str, Any]) -> Route:
    """Build a Route from scalar fields and raw sub-payloads.

    ``fields`` uses the current key names. Each sub-payload is decoded on its
    own, so a corrupt instructions blob still yields a route with its
    polyline intact.
    """
    start = _require_coordinate(fields.get("start_lat"), fields.get("start_lng"))
    end = _require_coordinate(fields.get("end_lat"), fields.get("end_lng"))

    polyline = _decode_field("polyline", decode_polyline, fields.get("polyline"))
    instructions = _decode_field(
        "instructions", decode_instructions, fields.get("instructions")
    )
    elevation = _decode_field("elevation", decode_elevation, fields.get("elevation"))

    if elevation and len(elevation) != len(polyline):
        logger.warning(
            f"Elevation profile ({len(elevation)}) does not align with polyline "
            f"({len(polyline)}), dropping it"
        )
        elevation = []

    waypoints = _decode_field("waypoints", decode_polyline, fields.get("waypoints"))

    try:
        route_id = UUID(str(fields["id"])) if fields.get("id") else uuid4()
    except ValueError:
        route_id = uuid4()

    distance = fields.get("distance")
    duration = fields.get("duration")
    distance = float(distance) if _is_number(distance) and distance >= 0 else 0.0
    duration = float(duration) if _is_number(duration) and duration >= 0 else 0.0

    return Route(
        id=route_id,
        start=start,
        end=end,
        waypoints=waypoints,
        distance=distance,
        duration=duration,
        elevation=elevation,
        instructions=instructions,
        polyline=polyline,
        difficulty=_enum_or_default(RouteDifficulty, fields.get("difficulty"), DEFAULT_DIFFICULTY),
        surface=_enum_or_default(RouteSurface, fields.get("surface"), DEFAULT_SURFACE),
        bike_type=_enum_or_default(BikeType, fields.get("bike_type"), DEFAULT_BIKE_TYPE),
        created_at=_parse_datetime(fields.get("created_at")),
        is_favorite=bool(fields.get("is_favorite", False)),
        provider=fields.get("provider") if isinstance(fields.get("provider"), str) else None,
    )


def scalar_fields(route: Route) -> Dict[str, Any]:
    """Scalar envelope fields of a route, using plain builtins only."""
    return {
        "id": str(route.id),
        "start_lat": route.start.latitude,
        "start_lng": route.start.longitude,
        "end_lat": route.end.latitude,
        "end_lng": route.end.longitude,
        "waypoints": [(w.latitude, w.longitude) for w in route.waypoints],
        "distance": route.distance,
        "duration": route.duration,
        "difficulty": route.difficulty.value,
        "surface": route.surface.value,
        "bike_type": route.bike_type.value,
        "created_at": route.created_at.isoformat(),
        "is_favorite": route.is_favorite,
        "provider": route.provider,
    }


# =============================================================================
# Codec
# =============================================================================


class RouteCodec:
    """Encode routes in the current format and decode every known format."""

    @staticmethod
    def encode(route: Route) -> bytes:
        envelope = scalar_fields(route)
        envelope["polyline"] = encode_polyline(route.polyline)
        envelope["instructions"] = encode_instructions(route.instructions)
        envelope["elevation"] = encode_elevation(route.elevation)
        return MAGIC + pickle.dumps(envelope, protocol=PICKLE_PROTOCOL)

    @staticmethod
    def decode(data: bytes) -> Route:
        """Decode a stored route, raising UnrecognizedFormat if no format fits."""
        if not data:
            raise UnrecognizedFormat("Empty route payload")

        if data.startswith(MAGIC):
            envelope = RouteCodec._binary_envelope(data[len(MAGIC):])
            if envelope is None:
                raise UnrecognizedFormat("Tagged route payload is corrupt")
            return route_from_fields(envelope)

        legacy = RouteCodec._legacy_envelope(data)
        if legacy is not None:
            return route_from_fields(legacy)

        envelope = RouteCodec._binary_envelope(data)
        if envelope is not None:
            logger.debug("Decoded untagged binary route payload")
            return route_from_fields(envelope)

        raise UnrecognizedFormat()

    @staticmethod
    def migrate(data: bytes) -> bytes:
        """Rewrite any readable payload in the current format."""
        return RouteCodec.encode(RouteCodec.decode(data))

    @staticmethod
    def is_current(data: bytes) -> bool:
        return data.startswith(MAGIC)

    @staticmethod
    def _binary_envelope(data: bytes) -> Optional[Dict[str, Any]]:
        try:
            envelope = _restricted_loads(data)
        except InvalidResponse:
            return None
        return envelope if isinstance(envelope, dict) else None

    @staticmethod
    def _legacy_envelope(data: bytes) -> Optional[Dict[str, Any]]:
        try:
            parsed = json.loads(data)
        except ValueError:
            return None
        if not isinstance(parsed, dict):
            return None

        fields = {}
        for key, legacy_key in LEGACY_KEYS.items():
            if legacy_key in parsed:
                fields[key] = parsed[legacy_key]
            elif key in parsed:
                fields[key] = parsed[key]
        return fields
