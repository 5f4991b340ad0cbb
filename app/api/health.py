from typing import Annotated, Dict, Any

from fastapi import APIRouter, Depends
from app.core.config import settings, startup_time
from app.db.backend_client import BackendClient, get_backend
from app.db.redis_client import redis_client
import psutil
from datetime import datetime, UTC
from time import time

router = APIRouter(prefix="/health", tags=["Health"])


def calculate_uptime() -> Dict[str, Any]:
    """
    Calculate the uptime of the application since startup.
    """
    uptime_seconds = time() - startup_time
    hours = int(uptime_seconds // 3600)
    minutes = int((uptime_seconds % 3600) // 60)
    seconds = int(uptime_seconds % 60)

    return {
        "uptime_seconds": round(uptime_seconds, 2),
        "uptime_formatted": f"{hours}h {minutes}m {seconds}s",
    }


@router.get("/")
async def health_check():
    """
    Health check endpoint
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.ENVIRONMENT,
        **calculate_uptime(),
    }


@router.get("/details")
async def health_check_details(
    backend: Annotated[BackendClient, Depends(get_backend)],
):
    """
    Detailed health check: process resources and the services we depend on.
    """
    memory_info = psutil.virtual_memory()
    backend_ok = await backend.ping()
    redis_ok = await redis_client.ping()

    return {
        "status": "healthy" if backend_ok and redis_ok else "degraded",
        "version": settings.VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.ENVIRONMENT,
        "services": {
            "backend": "up" if backend_ok else "down",
            "redis": "up" if redis_ok else "down",
        },
        "cpu_usage": psutil.cpu_percent(interval=None),
        "memory_total": memory_info.total,
        "memory_used": memory_info.used,
        "memory_percent": memory_info.percent,
        **calculate_uptime(),
    }
