"""Liveness and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.core.config import get_settings
from storefront.db.session import engine
from storefront.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "storefront-catalog-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates the API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


def _check_database() -> dict[str, str]:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"Database connection failed: {e}"}
    return {"status": "healthy", "message": "Database connection successful"}


def _check_redis() -> dict[str, str]:
    client = create_redis_client(
        get_settings().redis_url, decode_responses=True, socket_connect_timeout=2
    )
    try:
        client.ping()
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"Redis connection failed: {e}"}
    finally:
        client.close()
    return {"status": "healthy", "message": "Redis connection successful"}


@router.get("/ready", summary="Readiness probe")
async def ready() -> dict[str, Any]:
    """Report database and Redis connectivity; 503 when either is down.

    Redis backs carts, import progress and the Celery broker.
    """
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {"database": _check_database(), "redis": _check_redis()},
    }
    if any(check["status"] != "healthy" for check in checks["checks"].values()):
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )
    return checks
