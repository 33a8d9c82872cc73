"""Health check endpoints."""

import httpx
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from fietsroute.config import settings
from fietsroute.db.session import get_db

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/db")
async def database_health(db: AsyncSession = Depends(get_db), response: Response = None):
    """Check database connection health.

    Returns HTTP 503 if database is unavailable.
    """
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        if response:
            response.status_code = 503
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db), response: Response = None):
    """Readiness check for the database and the Valhalla fallback.

    Returns HTTP 503 if the database is unavailable. Routing services are
    reported but not required, since the offline estimator always answers.
    """
    checks = {
        "database": False,
        "valhalla": False,
        "openrouteservice_configured": bool(settings.ors_api_key),
    }
    errors = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        errors["database"] = str(e)

    if not settings.offline_only:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                valhalla_response = await client.get(f"{settings.valhalla_url}/status")
                checks["valhalla"] = valhalla_response.status_code == 200
        except httpx.HTTPError as e:
            errors["valhalla"] = str(e)

    ready = checks["database"]
    if not ready and response:
        response.status_code = 503

    result = {
        "status": "ready" if ready else "not_ready",
        "checks": checks,
    }

    if errors:
        result["errors"] = errors

    return result
