"""Persisted bike route database model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from fietsroute.models.base import Base


class BikeRouteRecord(Base):
    """A saved route.

    ``payload`` holds the encoded route envelope. The scalar columns mirror it
    for ordering and lookups. Rows written before the envelope existed have no
    payload and keep polyline, instructions and elevation in the legacy JSON
    blob columns until they are migrated.
    """

    __tablename__ = "bike_routes"

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Endpoints
    start_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    start_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    end_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    end_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    waypoints_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

    # Summary
    distance: Mapped[float] = mapped_column(Float, default=0.0)
    duration: Mapped[float] = mapped_column(Float, default=0.0)
    difficulty: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    surface: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bike_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Current encoding
    payload: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

    # Legacy sub-payloads
    polyline_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    instructions_data: Mapped[Optional[bytes]] = mapped_column(
        LargeBinary, nullable=True
    )
    elevation_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
