"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

from gasreport.config import APP_VERSION, settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service health and configuration summary (no secrets)."""
    return {
        "status": "healthy",
        "service": "gasreport",
        "version": APP_VERSION,
        "job_store": settings.job_store_backend,
        "dispatch_mode": settings.dispatch_mode,
        "model": settings.gemini_model,
        "api_key_configured": bool(settings.gemini_api_key),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
