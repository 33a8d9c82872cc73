"""Tests for the routing providers.

HTTP traffic is served by ``httpx.MockTransport`` handlers, so no network
access is needed.
"""

import json

import httpx
import pytest

from fietsroute.schemas.common import Coordinate
from fietsroute.schemas.routing import (
    BikeType,
    ManeuverType,
    Route,
    RoutePreferences,
)
from fietsroute.services.routing.errors import (
    InvalidResponse,
    NetworkError,
    NoRouteFound,
)
from fietsroute.services.routing.geo import encode_polyline
from fakes import AMSTERDAM, UTRECHT

MIDDLE = Coordinate(latitude=52.2, longitude=5.0)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _ors_feature(distance=45000.0, duration=9000.0, instructions=("Volg het fietspad",)):
    steps = [
        {"instruction": text, "distance": distance / len(instructions), "type": 6, "way_points": [1, 2]}
        for text in instructions
    ]
    steps.insert(0, {"instruction": "Vertrek", "distance": 0, "type": 11, "way_points": [0, 0]})
    steps.append({"instruction": "Aangekomen", "distance": 0, "type": 10, "way_points": [2, 2]})
    return {
        "type": "Feature",
        "properties": {
            "summary": {"distance": distance, "duration": duration},
            "ascent": 12.0,
            "descent": 8.0,
            "segments": [{"steps": steps}],
        },
        "geometry": {
            "type": "LineString",
            "coordinates": [
                [AMSTERDAM.longitude, AMSTERDAM.latitude, 1.0],
                [MIDDLE.longitude, MIDDLE.latitude, 5.0],
                [UTRECHT.longitude, UTRECHT.latitude, 3.0],
            ],
        },
    }


def _valhalla_trip(length_km=44.0, time_s=9500.0, instruction="Volg het fietspad"):
    return {
        "summary": {"length": length_km, "time": time_s},
        "legs": [
            {
                "shape": encode_polyline([AMSTERDAM, MIDDLE, UTRECHT]),
                "maneuvers": [
                    {"type": 1, "instruction": "Vertrek", "length": 20.0, "begin_shape_index": 0},
                    {"type": 15, "instruction": instruction, "length": 24.0, "begin_shape_index": 1},
                    {"type": 4, "instruction": "Bestemming", "length": 0.0, "begin_shape_index": 2},
                ],
            }
        ],
    }


# =============================================================================
# OpenRouteService Tests
# =============================================================================

class TestOpenRouteService:
    """Tests for the OpenRouteService provider."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"features": [_ors_feature()]})

        provider = OpenRouteServiceProvider(
            "https://ors.example/", "secret-key", client=_client(handler)
        )
        await provider.compute_route(AMSTERDAM, UTRECHT, [MIDDLE], BikeType.ROAD, RoutePreferences())

        assert seen["url"] == "https://ors.example/v2/directions/cycling-road/geojson"
        assert seen["auth"] == "secret-key"
        body = seen["body"]
        assert body["coordinates"] == [
            [AMSTERDAM.longitude, AMSTERDAM.latitude],
            [MIDDLE.longitude, MIDDLE.latitude],
            [UTRECHT.longitude, UTRECHT.latitude],
        ]
        assert body["elevation"] is True
        assert body["instructions"] is True
        assert body["preference"] == "fastest"
        assert body["options"]["avoid_features"] == ["steps", "ferries"]

    @pytest.mark.asyncio
    async def test_profiles_per_bike_type(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        urls = []

        def handler(request):
            urls.append(request.url.path)
            return httpx.Response(200, json={"features": [_ors_feature()]})

        provider = OpenRouteServiceProvider("https://ors.example", "k", client=_client(handler))
        for bike_type in (BikeType.MOUNTAIN, BikeType.CARGO):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], bike_type, RoutePreferences())

        assert urls == [
            "/v2/directions/cycling-mountain/geojson",
            "/v2/directions/cycling-regular/geojson",
        ]

    @pytest.mark.asyncio
    async def test_parse_feature(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        def handler(request):
            return httpx.Response(
                200, json={"features": [_ors_feature(), _ors_feature(distance=50000)]}
            )

        provider = OpenRouteServiceProvider("https://ors.example", "k", client=_client(handler))
        routes = await provider.compute_route(
            AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences()
        )

        assert len(routes) == 2
        raw = routes[0]
        assert raw.distance == 45000
        assert raw.duration == 9000
        assert raw.polyline == [AMSTERDAM, MIDDLE, UTRECHT]
        assert raw.elevation == [1.0, 5.0, 3.0]
        assert raw.ascent == 12.0
        assert [s.maneuver for s in raw.steps] == [
            ManeuverType.START,
            ManeuverType.STRAIGHT,
            ManeuverType.DESTINATION,
        ]
        assert raw.steps[1].coordinate == MIDDLE

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_call(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        provider = OpenRouteServiceProvider("https://ors.example", None, client=_client(handler))

        with pytest.raises(NetworkError):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())
        assert calls == []

    @pytest.mark.asyncio
    async def test_non_200_is_network_error(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        provider = OpenRouteServiceProvider(
            "https://ors.example", "k",
            client=_client(lambda request: httpx.Response(403, json={"error": "quota"})),
        )

        with pytest.raises(NetworkError):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenRouteServiceProvider("https://ors.example", "k", client=_client(handler))

        with pytest.raises(NetworkError):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_empty_features_is_no_route(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        provider = OpenRouteServiceProvider(
            "https://ors.example", "k",
            client=_client(lambda request: httpx.Response(200, json={"features": []})),
        )

        with pytest.raises(NoRouteFound):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_malformed_payload_is_invalid_response(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        provider = OpenRouteServiceProvider(
            "https://ors.example", "k",
            client=_client(lambda request: httpx.Response(200, json={"features": [{"geometry": {}}]})),
        )

        with pytest.raises(InvalidResponse):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "feature",
        [
            {"properties": {"summary": []}, "geometry": {"coordinates": []}},
            {"properties": [], "geometry": {"coordinates": []}},
            {"properties": {"summary": {}, "segments": [[]]}, "geometry": {"coordinates": []}},
            {"properties": {"summary": {}, "segments": [{"steps": [7]}]}, "geometry": {"coordinates": []}},
            "feature",
        ],
    )
    async def test_wrong_shapes_are_invalid_response(self, feature):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        provider = OpenRouteServiceProvider(
            "https://ors.example", "k",
            client=_client(lambda request: httpx.Response(200, json={"features": [feature]})),
        )

        with pytest.raises(InvalidResponse):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_non_json_is_invalid_response(self):
        from fietsroute.services.routing.providers import OpenRouteServiceProvider

        provider = OpenRouteServiceProvider(
            "https://ors.example", "k",
            client=_client(lambda request: httpx.Response(200, text="<html>")),
        )

        with pytest.raises(InvalidResponse):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())


# =============================================================================
# Valhalla Tests
# =============================================================================

class TestValhalla:
    """Tests for the Valhalla provider."""

    @pytest.mark.asyncio
    async def test_trip_and_alternates(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "trip": _valhalla_trip(),
                    "alternates": [{"trip": _valhalla_trip(length_km=47.5, instruction="Neem de snelweg")}],
                },
            )

        provider = ValhallaProvider("http://valhalla:8002/", client=_client(handler))
        routes = await provider.compute_route(
            AMSTERDAM, UTRECHT, [MIDDLE], BikeType.CITY, RoutePreferences()
        )

        assert seen["url"] == "http://valhalla:8002/route"
        body = seen["body"]
        assert body["costing"] == "bicycle"
        assert body["alternates"] == 2
        assert body["directions_options"]["units"] == "kilometers"
        assert [loc["type"] for loc in body["locations"]] == ["break", "through", "break"]

        assert len(routes) == 2
        main = routes[0]
        assert main.distance == pytest.approx(44000)
        assert main.duration == 9500
        assert len(main.polyline) == 3
        assert main.polyline[1].latitude == pytest.approx(MIDDLE.latitude)
        assert [s.maneuver for s in main.steps] == [
            ManeuverType.START,
            ManeuverType.TURN_LEFT,
            ManeuverType.DESTINATION,
        ]
        assert main.steps[1].distance == pytest.approx(24000)
        assert routes[1].distance == pytest.approx(47500)
        assert routes[1].steps[1].instruction == "Neem de snelweg"

    @pytest.mark.asyncio
    async def test_no_path_error_code(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        def handler(request):
            return httpx.Response(
                400, json={"error_code": 442, "error": "No path could be found for input"}
            )

        provider = ValhallaProvider("http://valhalla:8002", client=_client(handler))

        with pytest.raises(NoRouteFound):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_server_error_is_network_error(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider(
            "http://valhalla:8002",
            client=_client(lambda request: httpx.Response(500, text="boom")),
        )

        with pytest.raises(NetworkError):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_missing_trip_is_no_route(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider(
            "http://valhalla:8002",
            client=_client(lambda request: httpx.Response(200, json={})),
        )

        with pytest.raises(NoRouteFound):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"trip": {"legs": [1]}},
            {"trip": {"legs": [{"shape": "", "maneuvers": ["start"]}]}},
            {"trip": {"summary": [], "legs": [{"shape": ""}]}},
            {"trip": ["legs"]},
        ],
    )
    async def test_wrong_shapes_are_invalid_response(self, body):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider(
            "http://valhalla:8002",
            client=_client(lambda request: httpx.Response(200, json=body)),
        )

        with pytest.raises(InvalidResponse):
            await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

    @pytest.mark.asyncio
    async def test_non_list_alternates_ignored(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider(
            "http://valhalla:8002",
            client=_client(
                lambda request: httpx.Response(200, json={"trip": _valhalla_trip(), "alternates": 3})
            ),
        )

        routes = await provider.compute_route(AMSTERDAM, UTRECHT, [], BikeType.CITY, RoutePreferences())

        assert len(routes) == 1

    def test_costing_for_road_bike(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider("http://valhalla:8002", client=_client(lambda r: httpx.Response(200)))
        prefs = RoutePreferences(avoid_highways=False, prefer_bike_paths=False)

        options = provider._build_costing_options(BikeType.ROAD, prefs)

        assert options["bicycle_type"] == "Road"
        assert options["cycling_speed"] == 25.0
        assert options["use_roads"] == 0.7
        assert options["avoid_bad_surfaces"] == 0.9

    def test_costing_preferences(self):
        from fietsroute.services.routing.providers import ValhallaProvider

        provider = ValhallaProvider("http://valhalla:8002", client=_client(lambda r: httpx.Response(200)))

        highways = provider._build_costing_options(
            BikeType.CITY, RoutePreferences(avoid_highways=True, prefer_bike_paths=False)
        )
        paths = provider._build_costing_options(
            BikeType.MOUNTAIN, RoutePreferences(prefer_bike_paths=True, prefer_nature=True)
        )

        assert highways["use_roads"] == 0.25
        assert paths["use_roads"] == 0.1
        assert paths["use_hills"] == 0.8
        assert paths["use_living_streets"] == 0.8


# =============================================================================
# Offline Estimator Tests
# =============================================================================

class TestOfflineEstimator:
    """Tests for the straight-line estimator."""

    @pytest.mark.asyncio
    async def test_waypoints_become_instructions(self):
        from fietsroute.services.routing.geo import path_length
        from fietsroute.services.routing.providers import OfflineEstimator

        waypoints = [
            Coordinate(latitude=52.3, longitude=4.95),
            Coordinate(latitude=52.2, longitude=5.0),
            Coordinate(latitude=52.15, longitude=5.1),
        ]

        route = await OfflineEstimator().compute_route(
            AMSTERDAM, UTRECHT, waypoints, BikeType.CITY, RoutePreferences()
        )

        assert isinstance(route, Route)
        assert len(route.instructions) == 5
        assert route.instructions[0].type == ManeuverType.START
        assert [i.type for i in route.instructions[1:4]] == [ManeuverType.STRAIGHT] * 3
        assert route.instructions[-1].type == ManeuverType.DESTINATION
        assert route.distance == pytest.approx(path_length([AMSTERDAM, *waypoints, UTRECHT]))
        # city bikes ride at 15 km/h
        assert route.duration == pytest.approx(route.distance / (15 / 3.6))
        assert route.polyline == [AMSTERDAM, *waypoints, UTRECHT]
        assert route.elevation == []
        assert route.provider == "offline"

    @pytest.mark.asyncio
    async def test_direct_route(self):
        from fietsroute.services.routing.providers import OfflineEstimator

        route = await OfflineEstimator().compute_route(
            AMSTERDAM, UTRECHT, [], BikeType.ROAD, RoutePreferences()
        )

        assert len(route.instructions) == 2
        assert route.polyline == [AMSTERDAM, UTRECHT]
        assert route.instructions[0].distance == pytest.approx(route.distance)


# =============================================================================
# Provider Chain Tests
# =============================================================================

class TestBuildProviders:
    """Tests for the provider chain built from settings."""

    def test_chain_order(self):
        from unittest.mock import MagicMock

        from fietsroute.services.routing.providers import (
            OfflineEstimator,
            OpenRouteServiceProvider,
            ValhallaProvider,
            build_providers,
        )

        settings = MagicMock()
        settings.ors_base_url = "https://ors.example"
        settings.ors_api_key = "k"
        settings.valhalla_url = "http://valhalla:8002"
        settings.polyline_max_points = 300

        providers = build_providers(settings, client=_client(lambda r: httpx.Response(200)))

        assert [type(p) for p in providers] == [
            OpenRouteServiceProvider,
            ValhallaProvider,
            OfflineEstimator,
        ]
        assert [p.is_offline for p in providers] == [False, False, True]


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
