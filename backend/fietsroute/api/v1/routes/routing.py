"""Routing API endpoints."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from fietsroute.api.deps import get_coordinator
from fietsroute.config import settings
from fietsroute.core.exceptions import (
    ResourceNotFoundException,
    api_exception_from_route_error,
)
from fietsroute.schemas.routing import Route, RouteCalculationRequest, RouteRequest
from fietsroute.services.export import export_gpx, export_routes_json
from fietsroute.services.routing.coordinator import RouteCoordinator
from fietsroute.services.routing.errors import RouteError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_request_id(request: Request) -> str:
    """Get request ID from request state."""
    return getattr(request.state, "request_id", "unknown")


@router.post("/calculate", response_model=Route)
async def calculate_route(
    body: RouteCalculationRequest,
    request: Request,
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> Route:
    """
    Calculate a cycling route between two points.

    Providers are tried in order (OpenRouteService, Valhalla, offline
    estimate); recent nearby requests are answered from the route cache.
    """
    route_request = RouteRequest(
        start=body.start,
        end=body.end,
        waypoints=body.waypoints,
        bike_type=body.bike_type or settings.bike_type,
        preferences=body.preferences or settings.route_preferences(),
    )
    logger.info(
        f"[{get_request_id(request)}] Route request {route_request.id} "
        f"({route_request.bike_type.value}, {len(route_request.waypoints)} waypoints)"
    )

    try:
        return await coordinator.compute(route_request)
    except RouteError as e:
        raise api_exception_from_route_error(e)


@router.get("", response_model=List[Route])
async def list_routes(
    limit: int = Query(default=10, ge=1, le=50),
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> List[Route]:
    """Most recently created routes in the working set."""
    return coordinator.recent_routes(limit)


@router.post("/memory-pressure")
async def memory_pressure(
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> dict:
    """Trim the working set to the configured number of recent routes."""
    removed = await coordinator.on_memory_pressure()
    return {"removed": removed, "remaining": len(coordinator.routes)}


@router.get("/saved", response_model=List[Route])
async def saved_routes(
    limit: int = Query(default=50, ge=1, le=50),
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> List[Route]:
    """Load saved routes from the database into the working set."""
    return await coordinator.load_saved_routes(limit)


@router.get("/export")
async def export_routes(
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> Response:
    """JSON data export of the working set, favourites and route settings."""
    routes = coordinator.routes
    content = export_routes_json(
        routes,
        favorites=[r for r in routes if r.is_favorite],
        settings={
            "bike_type": settings.bike_type.value,
            "avoid_highways": settings.avoid_highways,
            "prefer_bike_paths": settings.prefer_bike_paths,
        },
    )
    return Response(content=content, media_type="application/json")


@router.delete("/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(
    route_id: UUID,
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> Response:
    """Delete a route from the working set and the database."""
    if not await coordinator.delete_route(route_id):
        raise ResourceNotFoundException("Route", str(route_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{route_id}/favorite", response_model=Route)
async def toggle_favorite(
    route_id: UUID,
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> Route:
    """Flip the favourite flag of a route."""
    route = await coordinator.toggle_favorite(route_id)
    if route is None:
        raise ResourceNotFoundException("Route", str(route_id))
    return route


@router.get("/{route_id}/gpx")
async def route_gpx(
    route_id: UUID,
    coordinator: RouteCoordinator = Depends(get_coordinator),
) -> Response:
    """Export a route as a GPX track."""
    route = coordinator.get_route(route_id)
    if route is None and coordinator.store is not None:
        route = await coordinator.store.get(route_id)
    if route is None:
        raise ResourceNotFoundException("Route", str(route_id))

    return Response(
        content=export_gpx(route),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="route-{route_id}.gpx"'},
    )
