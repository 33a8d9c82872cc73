"""Route computation: providers, scoring, caching and coordination."""

from fietsroute.services.routing.cache import RouteCache
from fietsroute.services.routing.codec import RouteCodec
from fietsroute.services.routing.coordinator import RouteCoordinator, RouteEvent
from fietsroute.services.routing.errors import (
    AllProvidersFailed,
    InvalidCoordinates,
    InvalidResponse,
    NetworkError,
    NoRouteFound,
    RouteError,
    UnrecognizedFormat,
)
from fietsroute.services.routing.scoring import (
    InstructionClassifier,
    KeywordInstructionClassifier,
    ScoringEngine,
)

__all__ = [
    "RouteCache",
    "RouteCodec",
    "RouteCoordinator",
    "RouteEvent",
    "ScoringEngine",
    "InstructionClassifier",
    "KeywordInstructionClassifier",
    "RouteError",
    "InvalidCoordinates",
    "NetworkError",
    "NoRouteFound",
    "InvalidResponse",
    "AllProvidersFailed",
    "UnrecognizedFormat",
]
