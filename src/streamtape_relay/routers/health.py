import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse

from streamtape_relay.config.settings import Settings
from streamtape_relay.dependencies import get_settings_from_app

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings_from_app)):
    """
    Health check endpoint for monitoring API status and component readiness.

    Reports whether Streamtape credentials are configured and whether the
    temporary upload directory is writable. Answers 503 until both are.
    """
    health_status = {
        "status": "ok",
        "environment": settings.environment,
        "components": {
            "api": "ready",
            "provider_credentials": "ready",
            "temp_storage": "ready",
        },
        "ready": False,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if not settings.credentials_configured:
        health_status["components"]["provider_credentials"] = "missing"
        health_status["status"] = "degraded"

    upload_dir = settings.upload_dir
    if not (upload_dir.is_dir() and os.access(upload_dir, os.W_OK)):
        health_status["components"]["temp_storage"] = "not writable"
        health_status["status"] = "degraded"

    health_status["ready"] = all(
        value == "ready" for value in health_status["components"].values()
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if health_status["ready"] else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=health_status,
    )


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root():
    """Confirm the backend is running."""
    return "Streamtape relay API is running!"
