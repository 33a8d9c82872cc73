"""Shared API dependencies and construction of the route coordinator."""

from datetime import timedelta
from typing import Optional

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fietsroute.config import Settings
from fietsroute.services.route_store import SqlRouteStore
from fietsroute.services.routing.cache import RouteCache
from fietsroute.services.routing.coordinator import RouteCoordinator
from fietsroute.services.routing.providers import build_providers
from fietsroute.services.routing.scoring import ScoringEngine


def build_coordinator(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    client: Optional[httpx.AsyncClient] = None,
) -> RouteCoordinator:
    """Wire providers, scoring, cache and store together from settings."""
    cache = RouteCache(
        capacity=settings.cache_capacity,
        max_age=timedelta(hours=settings.cache_max_age_hours),
        match_radius_m=settings.cache_match_radius_meters,
    )
    return RouteCoordinator(
        providers=build_providers(settings, client=client),
        scoring=ScoringEngine(),
        cache=cache,
        store=SqlRouteStore(session_maker),
        offline_only=settings.offline_only,
        working_set_limit=settings.working_set_limit,
        default_timeout=settings.provider_timeout_seconds,
        max_points=settings.polyline_max_points,
    )


def get_coordinator(request: Request) -> RouteCoordinator:
    """Dependency returning the coordinator created at startup."""
    return request.app.state.coordinator
