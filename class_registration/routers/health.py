"""Health check endpoints."""
from fastapi import APIRouter, Request
import logging

from ..core.config import settings
from ..core.database import health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }

@router.get("/db-health")
async def database_health(request: Request):
    """Database health check"""
    healthy = await health_check_db(request.app.state.db_engine)
    if not healthy:
        logger.error("Database health check failed")
    return {
        "status": "healthy" if healthy else "unhealthy",
        "lock_backend": settings.lock_backend,
    }
