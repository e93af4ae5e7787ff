"""Health check endpoint.

Learn: Reports whether Redis (the connection store) answers and whether
delivery is enabled at all (a gateway endpoint is configured).
"""

from fastapi import APIRouter, Request

from clinicpush import __version__
from clinicpush.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        checks["redis"] = "error: not initialized"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    status = "healthy" if checks["redis"] == "ok" else "degraded"

    return {
        "status": status,
        "realtime_enabled": settings.realtime_enabled,
        **checks,
    }
