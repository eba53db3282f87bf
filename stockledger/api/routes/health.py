"""
Health check endpoints.
"""

import time

import aiosqlite
from fastapi import APIRouter

from stockledger import __version__
from stockledger.application.dto.responses import HealthResponse
from stockledger.config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])

_started = time.monotonic()


def _uptime() -> float:
    return time.monotonic() - _started


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__, uptime_seconds=_uptime())


@router.get("/db", response_model=HealthResponse)
async def db_health() -> HealthResponse:
    """
    Ledger database check.

    Reads the latest applied migration through a pooled connection, so a
    reachable but unmigrated database is reported as unhealthy too.
    """
    from stockledger.infrastructure.storage.sqlite import get_pool

    start = time.perf_counter()
    schema_version = None
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            cursor = await conn.execute("SELECT MAX(version) FROM schema_migrations")
            (schema_version,) = await cursor.fetchone()
        database = "ok" if schema_version else "unmigrated"
    except aiosqlite.Error as e:
        logger.error("db_health_failed", error=str(e))
        database = f"error: {e}"

    return HealthResponse(
        status="healthy" if database == "ok" else "unhealthy",
        version=__version__,
        uptime_seconds=_uptime(),
        database=database,
        schema_version=schema_version,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )
