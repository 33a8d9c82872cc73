"""Bicycle suitability scoring for alternative routes."""

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from fietsroute.schemas.routing import BikeType, RawRoute, RoutePreferences
from fietsroute.services.routing.errors import NoRouteFound

logger = logging.getLogger(__name__)


class InstructionClassifier(Protocol):
    """Classifies instruction text for the scoring heuristics."""

    def is_bicycle_friendly(self, text: str) -> bool: ...

    def is_highway(self, text: str) -> bool: ...

    def is_bike_path(self, text: str) -> bool: ...


class KeywordInstructionClassifier:
    """Keyword lookup over lowercased instruction text (Dutch and English)."""

    FRIENDLY_KEYWORDS = ("fietspad", "bike", "cycle", "bicycle")
    HIGHWAY_KEYWORDS = ("snelweg", "highway", "motorway")
    BIKE_PATH_KEYWORDS = ("fietspad", "bike path", "cycle path")

    def is_bicycle_friendly(self, text: str) -> bool:
        text = text.lower()
        if any(k in text for k in self.FRIENDLY_KEYWORDS):
            return True
        return not any(k in text for k in self.HIGHWAY_KEYWORDS)

    def is_highway(self, text: str) -> bool:
        text = text.lower()
        return any(k in text for k in self.HIGHWAY_KEYWORDS)

    def is_bike_path(self, text: str) -> bool:
        text = text.lower()
        return any(k in text for k in self.BIKE_PATH_KEYWORDS)


class ScoringEngine:
    """Scores route alternatives and picks the most bicycle-friendly one."""

    def __init__(self, classifier: Optional[InstructionClassifier] = None):
        self.classifier = classifier or KeywordInstructionClassifier()

    def select(
        self,
        alternatives: Sequence[RawRoute],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> RawRoute:
        """Return the highest scoring alternative; ties keep the earliest."""
        if not alternatives:
            raise NoRouteFound("No alternatives to choose from")
        if len(alternatives) == 1:
            return alternatives[0]

        best_score, best = None, None
        for i, (score, raw) in enumerate(self.rank(alternatives, bike_type, preferences)):
            logger.debug(f"Alternative {i}: score={score:.2f}, {raw.distance:.0f}m")
            if best_score is None or score > best_score:
                best_score, best = score, raw

        logger.info(f"Selected alternative with score {best_score:.2f} of {len(alternatives)}")
        return best

    def rank(
        self,
        alternatives: Sequence[RawRoute],
        bike_type: BikeType,
        preferences: RoutePreferences,
    ) -> List[Tuple[float, RawRoute]]:
        """Score every alternative, in input order."""
        return [(self.score(raw, bike_type, preferences), raw) for raw in alternatives]

    def score(
        self, raw: RawRoute, bike_type: BikeType, preferences: RoutePreferences
    ) -> float:
        km = raw.distance / 1000
        hours = raw.duration / 3600

        score = max(0.0, 100 - km * 2)
        score += max(0.0, 50 - hours * 10)
        score += self._friendly_ratio(raw) * 100

        if preferences.avoid_highways:
            score += (1 - self._highway_ratio(raw)) * 50
        if preferences.prefer_bike_paths:
            score += self._bike_path_ratio(raw) * 75

        score += self._bike_type_bonus(km, bike_type, preferences)
        return score

    def _ratio(self, raw: RawRoute, predicate) -> float:
        if not raw.steps:
            return 0.0
        matching = sum(1 for step in raw.steps if predicate(step.instruction))
        return matching / len(raw.steps)

    def _friendly_ratio(self, raw: RawRoute) -> float:
        return self._ratio(raw, self.classifier.is_bicycle_friendly)

    def _highway_ratio(self, raw: RawRoute) -> float:
        return self._ratio(raw, self.classifier.is_highway)

    def _bike_path_ratio(self, raw: RawRoute) -> float:
        return self._ratio(raw, self.classifier.is_bike_path)

    @staticmethod
    def _bike_type_bonus(
        km: float, bike_type: BikeType, preferences: RoutePreferences
    ) -> float:
        if bike_type == BikeType.CITY:
            return max(0.0, 50 - km)
        if bike_type == BikeType.ROAD:
            return min(50.0, km * 2)
        if bike_type == BikeType.MOUNTAIN:
            return 25.0 if preferences.prefer_nature else 0.0
        if bike_type == BikeType.ELECTRIC:
            return max(0.0, 25 - abs(km - 15))
        if bike_type == BikeType.CARGO:
            return max(0.0, 75 - km * 3)
        return 0.0
