"""
Health check endpoint used by load balancers and uptime monitors.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.config import settings
from app.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Report service status and database connectivity.

    Returns 503 when the database cannot be reached.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        database = "disconnected"

    body = {
        "status": "healthy" if database == "connected" else "unhealthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": database,
    }
    return JSONResponse(status_code=200 if database == "connected" else 503, content=body)
