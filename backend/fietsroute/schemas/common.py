"""Common schemas used across the application."""

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """Geographic coordinate.

    Bounds are not enforced at the field level: out-of-range coordinates are
    rejected by the route coordinator with ``InvalidCoordinates``.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., description="Latitude in degrees")
    longitude: float = Field(..., description="Longitude in degrees")

    @property
    def is_valid(self) -> bool:
        """Check the coordinate lies within latitude/longitude bounds."""
        return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180

    def is_close_to(self, other: "Coordinate", tolerance: float = 0.0001) -> bool:
        """Compare two coordinates within a tolerance in degrees (~11m)."""
        return (
            abs(self.latitude - other.latitude) < tolerance
            and abs(self.longitude - other.longitude) < tolerance
        )

    def as_lon_lat(self) -> list:
        """[longitude, latitude] pair as used by GeoJSON-style APIs."""
        return [self.longitude, self.latitude]
