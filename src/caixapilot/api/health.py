"""
Health check endpoint for monitoring and terminal connectivity probes.

Terminals send a HEAD request here (with a 1 s budget) before opening a
cash session; any answer means the network path to the backend is alive.
"""

import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from caixapilot.core.db import get_db

router = APIRouter(tags=["health"])

# Global app start time (set in lifespan)
_app_start_time: datetime | None = None


def set_app_start_time(start_time: datetime) -> None:
    """Called by lifespan to track when app started."""
    global _app_start_time
    _app_start_time = start_time


def get_uptime_seconds() -> int:
    """Calculate seconds since app start."""
    if _app_start_time is None:
        return 0
    return int((datetime.now() - _app_start_time).total_seconds())


async def check_database(db: AsyncSession) -> dict[str, Any]:
    """
    Check database connectivity.

    Returns: {"status": "ok"|"down", "response_time_ms": N, "error": str (if down)}
    """
    start = time.time()
    try:
        await db.execute(text("SELECT 1"))
        response_time_ms = int((time.time() - start) * 1000)
        return {
            "status": "ok",
            "response_time_ms": response_time_ms,
        }
    except Exception as e:
        response_time_ms = int((time.time() - start) * 1000)
        return {
            "status": "down",
            "response_time_ms": response_time_ms,
            "error": str(type(e).__name__),
        }


@router.head("/health", include_in_schema=False)
async def health_probe() -> Response:
    """Cheap reachability answer for terminal probes (no database round trip)."""
    return Response(status_code=status.HTTP_200_OK, headers={"Cache-Control": "no-store"})


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description=(
        "Returns API health status including uptime and dependency checks. "
        "Returns 200 regardless of degraded dependencies (for graceful degradation)."
    ),
)
async def health_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """
    Health check endpoint.

    Example response (degraded):
        {
            "status": "degraded",
            "uptime_seconds": 3600,
            "checks": {
                "database": {"status": "down", "response_time_ms": 1000, "error": "OperationalError"}
            }
        }
    """
    db_check = await check_database(db)
    overall_status = "ok" if db_check["status"] == "ok" else "degraded"

    return JSONResponse(
        content={
            "status": overall_status,
            "uptime_seconds": get_uptime_seconds(),
            "checks": {"database": db_check},
        },
        status_code=status.HTTP_200_OK,
        headers={"Cache-Control": "no-store"},
    )
