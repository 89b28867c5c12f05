"""Health check endpoint."""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from questledger.config import get_settings
from questledger.database import engine
from questledger.utils import durable_cache
from questledger.version import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "Database connection failed"})

    return {
        "status": "ok",
        "database": "connected",
        "cache": durable_cache.backend,
        "version": APP_VERSION,
        "environment": get_settings().environment,
    }
