"""Health endpoints for the load balancer and deploy checks."""

from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from storecredit.config import settings
from storecredit.database import engine
from storecredit.utils.redis_client import get_redis

router = APIRouter(tags=["health"])


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    redis_client = await get_redis()
    await redis_client.ping()


READINESS_PROBES = {
    "database": _ping_database,
    "redis": _ping_redis,
}


@router.get("/health")
async def health_check():
    """Liveness only; touches no dependency."""
    return {
        "status": "ok",
        "service": "StoreCredit",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check():
    """200 when every probe answers, 503 otherwise, with per-probe results."""
    checks = {"service": "ok"}
    for name, probe in READINESS_PROBES.items():
        # A failing probe is a result to report, not an error to raise
        try:
            await probe()
            checks[name] = "ok"
        except Exception as e:
            checks[name] = f"error: {str(e)[:100]}"

    healthy = all(result == "ok" for result in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": "StoreCredit",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
