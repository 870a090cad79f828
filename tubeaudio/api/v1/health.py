"""Health check endpoint."""

import platform
import shutil
import sys

from fastapi import APIRouter, Depends

from tubeaudio.api.deps import get_service, get_settings
from tubeaudio.config import Settings
from tubeaudio.services.converter import ConverterService

router = APIRouter()


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    service: ConverterService = Depends(get_service),
):
    """Service health, tool availability and job counts."""
    return {
        "status": "healthy",
        "instance": settings.instance_name,
        "poll_interval_seconds": settings.poll_interval_seconds,
        "jobs": service.counts(),
        "ffmpeg_available": shutil.which(settings.ffmpeg_path) is not None,
        "ytdlp_available": shutil.which(settings.ytdlp_path) is not None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
