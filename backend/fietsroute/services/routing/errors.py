"""Routing error taxonomy."""

from typing import Optional


class RouteError(Exception):
    """Base class for routing failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidCoordinates(RouteError):
    """Start, end or a waypoint lies outside latitude/longitude bounds."""

    def __init__(self, message: str = "Invalid coordinates"):
        super().__init__(message)


class NetworkError(RouteError):
    """Transport failure, timeout or non-success HTTP status."""


class NoRouteFound(RouteError):
    """The provider answered but has no route between the points."""

    def __init__(self, message: str = "No route found"):
        super().__init__(message)


class InvalidResponse(RouteError):
    """The provider payload could not be decoded."""


class AllProvidersFailed(RouteError):
    """Every provider in the chain failed; carries the last underlying error."""

    def __init__(self, cause: Optional[RouteError] = None):
        self.cause = cause
        message = "All routing providers failed"
        if cause is not None:
            message = f"{message}: {cause.message}"
        super().__init__(message)


class UnrecognizedFormat(RouteError):
    """Persisted route data matches none of the known storage formats."""

    def __init__(self, message: str = "Unrecognized route storage format"):
        super().__init__(message)
