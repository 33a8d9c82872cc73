"""Tests for route value types and geometry helpers."""

import math

import pytest
from pydantic import ValidationError

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import BikeType, Route, RoutePreferences
from fietsroute.services.routing.geo import (
    anchor_polyline,
    decode_polyline,
    encode_polyline,
    fingerprint,
    haversine,
    sample_indices,
)
from fakes import AMSTERDAM, UTRECHT, make_route


# =============================================================================
# Coordinate Tests
# =============================================================================

class TestCoordinate:
    """Tests for coordinate validity and proximity."""

    def test_bounds(self):
        assert Coordinate(latitude=90, longitude=180).is_valid
        assert Coordinate(latitude=-90, longitude=-180).is_valid
        assert not Coordinate(latitude=91, longitude=0).is_valid
        assert not Coordinate(latitude=0, longitude=-180.5).is_valid

    def test_non_finite_is_invalid(self):
        assert not Coordinate(latitude=math.nan, longitude=0).is_valid
        assert not Coordinate(latitude=0, longitude=math.inf).is_valid

    def test_is_close_to(self):
        a = Coordinate(latitude=52.0, longitude=5.0)
        assert a.is_close_to(Coordinate(latitude=52.00005, longitude=5.00005))
        assert not a.is_close_to(Coordinate(latitude=52.0002, longitude=5.0))

    def test_coordinates_are_immutable(self):
        with pytest.raises(ValidationError):
            AMSTERDAM.latitude = 0


# =============================================================================
# Route Formatting Tests
# =============================================================================

class TestRouteFormatting:
    """Tests for derived route properties."""

    def test_short_distance_in_meters(self):
        assert make_route(distance=850).formatted_distance == "850m"

    def test_long_distance_in_km(self):
        assert make_route(distance=12345).formatted_distance == "12.3 km"

    def test_duration_with_hours(self):
        assert make_route(duration=3900).formatted_duration == "1u 5min"

    def test_duration_minutes_only(self):
        assert make_route(duration=42 * 60).formatted_duration == "42 min"

    def test_name(self):
        route = make_route(distance=12345, duration=42 * 60)
        assert route.name == "Route 12.3 km • 42 min"

    def test_elevation_gain(self):
        route = make_route(polyline=[AMSTERDAM, UTRECHT, UTRECHT], elevation=[3.0, 10.0, -1.0])
        assert route.elevation_gain == 11.0
        assert make_route(elevation=[]).elevation_gain == 0.0

    @pytest.mark.parametrize(
        "bike_type,speed",
        [
            (BikeType.CITY, 15),
            (BikeType.MOUNTAIN, 12),
            (BikeType.ROAD, 25),
            (BikeType.ELECTRIC, 22),
            (BikeType.CARGO, 12),
        ],
    )
    def test_average_speed(self, bike_type, speed):
        assert make_route(bike_type=bike_type).average_speed == speed

    def test_computed_fields_are_serialized(self):
        data = make_route(distance=850, duration=300).model_dump(mode="json")
        assert data["formatted_distance"] == "850m"
        assert data["name"] == "Route 850m • 5 min"

    def test_favorite_toggle_produces_new_value(self):
        route = make_route()
        updated = route.model_copy(update={"is_favorite": True})
        assert not route.is_favorite
        assert updated.is_favorite
        assert updated.id == route.id

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            Route(start=AMSTERDAM, end=UTRECHT, distance=-1, duration=0)

    def test_preference_defaults(self):
        prefs = RoutePreferences()
        assert prefs.avoid_highways is True
        assert prefs.avoid_tunnels is False
        assert prefs.prefer_bike_paths is True
        assert prefs.prefer_nature is False
        assert prefs.max_distance_km == 50.0
        assert prefs.max_elevation_m == 200.0


# =============================================================================
# Geometry Tests
# =============================================================================

class TestGeo:
    """Tests for distance, fingerprint, sampling and polyline helpers."""

    def test_haversine_amsterdam_utrecht(self):
        distance = haversine(AMSTERDAM, UTRECHT)
        assert 33000 < distance < 35000

    def test_haversine_zero(self):
        assert haversine(AMSTERDAM, AMSTERDAM) == 0

    def test_fingerprint_rounds_to_hundredths(self):
        assert fingerprint(AMSTERDAM) == (52.37, 4.9)

    def test_sample_indices_keeps_short_sequences(self):
        assert sample_indices(5, 300) == [0, 1, 2, 3, 4]

    def test_sample_indices_keeps_first_and_last(self):
        indices = sample_indices(1000, 300)
        assert len(indices) == 300
        assert indices[0] == 0
        assert indices[-1] == 999
        assert indices == sorted(set(indices))

    def test_anchor_adds_missing_endpoints(self):
        middle = Coordinate(latitude=52.2, longitude=5.0)
        polyline, prepended, appended = anchor_polyline([middle], AMSTERDAM, UTRECHT)
        assert polyline == [AMSTERDAM, middle, UTRECHT]
        assert prepended and appended

    def test_anchor_keeps_close_endpoints(self):
        near_start = Coordinate(latitude=AMSTERDAM.latitude + 0.00001, longitude=AMSTERDAM.longitude)
        polyline, prepended, appended = anchor_polyline([near_start, UTRECHT], AMSTERDAM, UTRECHT)
        assert polyline == [near_start, UTRECHT]
        assert not prepended and not appended

    def test_polyline6_decoding(self):
        points = [AMSTERDAM, Coordinate(latitude=52.2, longitude=5.0), UTRECHT]
        decoded = decode_polyline(encode_polyline(points))
        assert len(decoded) == 3
        for expected, result in zip(points, decoded):
            assert result.latitude == pytest.approx(expected.latitude, abs=1e-6)
            assert result.longitude == pytest.approx(expected.longitude, abs=1e-6)

    def test_known_polyline5_string(self):
        decoded = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@", precision=5)
        assert decoded[0].latitude == pytest.approx(38.5)
        assert decoded[0].longitude == pytest.approx(-120.2)
        assert decoded[-1].latitude == pytest.approx(43.252)
        assert decoded[-1].longitude == pytest.approx(-126.453)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
