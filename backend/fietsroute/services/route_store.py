"""Persistent route storage."""

import logging
from datetime import timezone
from typing import List, Optional, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fietsroute.models.route_record import BikeRouteRecord
from fietsroute.schemas.routing import Route
from fietsroute.services.routing.codec import RouteCodec, route_from_fields
from fietsroute.services.routing.errors import UnrecognizedFormat

logger = logging.getLogger(__name__)

MAX_FETCH = 50


class RouteStore(Protocol):
    """Entity store the route coordinator persists into."""

    async def save(self, route: Route) -> None: ...

    async def get(self, route_id: UUID) -> Optional[Route]: ...

    async def fetch_recent(self, limit: int = MAX_FETCH) -> List[Route]: ...

    async def delete(self, route_id: UUID) -> bool: ...

    async def toggle_favorite(self, route_id: UUID) -> Optional[Route]: ...


def record_to_route(record: BikeRouteRecord) -> Route:
    """Decode a stored row.

    Rows with a payload go through the codec. Older rows are rebuilt from the
    columns, decoding each legacy blob on its own.
    """
    if record.payload is not None:
        return RouteCodec.decode(record.payload)

    return route_from_fields(
        {
            "id": record.id,
            "start_lat": record.start_latitude,
            "start_lng": record.start_longitude,
            "end_lat": record.end_latitude,
            "end_lng": record.end_longitude,
            "waypoints": record.waypoints_data,
            "distance": record.distance,
            "duration": record.duration,
            "difficulty": record.difficulty,
            "surface": record.surface,
            "bike_type": record.bike_type,
            "created_at": record.created_at,
            "is_favorite": record.is_favorite,
            "provider": record.provider,
            "polyline": record.polyline_data,
            "instructions": record.instructions_data,
            "elevation": record.elevation_data,
        }
    )


def apply_route(record: BikeRouteRecord, route: Route) -> None:
    """Write a route into a row as a current payload plus mirrored columns."""
    record.payload = RouteCodec.encode(route)
    record.name = route.name
    record.start_latitude = route.start.latitude
    record.start_longitude = route.start.longitude
    record.end_latitude = route.end.latitude
    record.end_longitude = route.end.longitude
    record.distance = route.distance
    record.duration = route.duration
    record.difficulty = route.difficulty.value
    record.surface = route.surface.value
    record.bike_type = route.bike_type.value
    record.provider = route.provider
    record.is_favorite = route.is_favorite
    record.created_at = route.created_at.astimezone(timezone.utc)

    # The payload supersedes the legacy blobs
    record.waypoints_data = None
    record.polyline_data = None
    record.instructions_data = None
    record.elevation_data = None


class SqlRouteStore:
    """RouteStore backed by the ``bike_routes`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def save(self, route: Route) -> None:
        """Insert or replace the stored copy of a route."""
        async with self.session_maker() as session:
            record = await session.get(BikeRouteRecord, route.id)
            if record is None:
                record = BikeRouteRecord(id=route.id)
                session.add(record)
            apply_route(record, route)
            await session.commit()
        logger.debug(f"Saved route {route.id}")

    async def get(self, route_id: UUID) -> Optional[Route]:
        async with self.session_maker() as session:
            record = await session.get(BikeRouteRecord, route_id)
            return record_to_route(record) if record is not None else None

    async def fetch_recent(self, limit: int = MAX_FETCH) -> List[Route]:
        """Most recently created routes first, at most 50."""
        limit = max(0, min(limit, MAX_FETCH))
        async with self.session_maker() as session:
            result = await session.execute(
                select(BikeRouteRecord)
                .order_by(BikeRouteRecord.created_at.desc())
                .limit(limit)
            )
            records = result.scalars().all()

        routes = []
        for record in records:
            try:
                routes.append(record_to_route(record))
            except UnrecognizedFormat as e:
                logger.warning(f"Skipping unreadable route {record.id}: {e.message}")
        return routes

    async def delete(self, route_id: UUID) -> bool:
        async with self.session_maker() as session:
            record = await session.get(BikeRouteRecord, route_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
        logger.info(f"Deleted route {route_id}")
        return True

    async def toggle_favorite(self, route_id: UUID) -> Optional[Route]:
        """Replace the stored route with a copy whose favourite flag is flipped."""
        async with self.session_maker() as session:
            record = await session.get(BikeRouteRecord, route_id)
            if record is None:
                return None
            route = record_to_route(record)
            updated = route.model_copy(update={"is_favorite": not route.is_favorite})
            apply_route(record, updated)
            await session.commit()
        return updated

    async def migrate_legacy_records(self) -> int:
        """Rewrite every row that is not in the current encoding. Returns the count."""
        migrated = 0
        async with self.session_maker() as session:
            result = await session.execute(select(BikeRouteRecord))
            for record in result.scalars().all():
                try:
                    if record.payload is None:
                        apply_route(record, record_to_route(record))
                    elif not RouteCodec.is_current(record.payload):
                        record.payload = RouteCodec.migrate(record.payload)
                    else:
                        continue
                except UnrecognizedFormat as e:
                    logger.warning(f"Cannot migrate route {record.id}: {e.message}")
                    continue
                migrated += 1
            await session.commit()

        if migrated:
            logger.info(f"Migrated {migrated} legacy route records")
        return migrated
