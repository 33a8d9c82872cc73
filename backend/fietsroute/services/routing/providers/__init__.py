"""Routing providers, in fallback priority order."""

from typing import List, Optional

import httpx

from fietsroute.services.routing.providers.base import RoutingProvider
from fietsroute.services.routing.providers.offline import OfflineEstimator
from fietsroute.services.routing.providers.openrouteservice import (
    OpenRouteServiceProvider,
)
from fietsroute.services.routing.providers.valhalla import ValhallaProvider


def build_providers(settings, client: Optional[httpx.AsyncClient] = None) -> List[RoutingProvider]:
    """Create the provider chain from settings: remote API, map service, offline."""
    return [
        OpenRouteServiceProvider(settings.ors_base_url, settings.ors_api_key, client=client),
        ValhallaProvider(settings.valhalla_url, client=client),
        OfflineEstimator(max_points=settings.polyline_max_points),
    ]


__all__ = [
    "RoutingProvider",
    "OpenRouteServiceProvider",
    "ValhallaProvider",
    "OfflineEstimator",
    "build_providers",
]
