import os
import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint reporting translation scheduler status.

    Returns "initializing" until the translation service is running.
    """
    service = getattr(request.app.state, "translation_service", None)

    translation_status = "initializing"
    scheduler = {}
    if service is not None and service.scheduler.is_running:
        translation_status = "healthy"
        scheduler = {
            "queue_length": service.scheduler.queue_length,
            "processing": service.scheduler.is_processing,
            "enabled": service.is_enabled(),
        }

    return {
        "status": translation_status,
        "timestamp": int(time.time()),
        "build_id": os.getenv("BUILD_ID", "unknown"),
        "services": {"translation": translation_status},
        "scheduler": scheduler,
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check that reports if the service is running.
    """
    return {"status": "alive"}
