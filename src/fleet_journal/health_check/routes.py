import logging
from http import HTTPStatus

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from src.fleet_journal.config import get_settings
from src.fleet_journal.database.database import db
from src.fleet_journal.redis.redis import redis_manager

logger = logging.getLogger(__name__)

health_router = APIRouter(prefix="/health", tags=["Health Check"])


@health_router.get("")
async def health_check():
    """Report the entity store backend and the state of its connections."""
    settings = get_settings()
    content = {"status": "ok", "store": settings.STORE_BACKEND}
    if settings.STORE_BACKEND == "sql":
        content["database"] = "connected" if db.is_connected else "disconnected"
    if not settings.REDIS_ENABLED:
        content["cache"] = "disabled"
    elif await redis_manager.is_healthy():
        content["cache"] = "connected"
    else:
        content["cache"] = "unavailable"

    degraded = content.get("database") == "disconnected"
    if degraded:
        content["status"] = "degraded"
        logger.warning(f"Health check degraded: {content}")
    return JSONResponse(
        status_code=HTTPStatus.SERVICE_UNAVAILABLE if degraded else HTTPStatus.OK,
        content=content,
    )
