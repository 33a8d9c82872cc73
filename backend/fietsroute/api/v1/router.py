"""API v1 router aggregation."""

from fastapi import APIRouter

from fietsroute.api.v1.routes import health, routing

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(routing.router, prefix="/routes", tags=["Routing"])
