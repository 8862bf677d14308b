"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from shopassist.config import Settings, get_settings
from shopassist.dependencies import get_storage_manager
from shopassist.storage.manager import StorageManager

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_storage(storage: StorageManager, settings: Settings) -> dict[str, Any]:
    """Ping the storage backend and return status."""
    try:
        await storage.ping()
        return {"status": "healthy", "backend": settings.storage_backend}
    except Exception as exc:
        logger.warning("Storage health check failed: %s", exc)
        return {
            "status": "unhealthy",
            "backend": settings.storage_backend,
            "error": str(exc),
        }


def _check_model(settings: Settings) -> dict[str, Any]:
    if not settings.google_api_key:
        return {"status": "unhealthy", "error": "Model API key not configured"}
    return {"status": "healthy", "model": settings.gemini_model}


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    """Return aggregate health of all backend services."""
    services = {
        "storage": await _check_storage(storage, settings),
        "model": _check_model(settings),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }
