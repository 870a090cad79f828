"""FastAPI dependencies resolving objects wired by the app factory."""

from fastapi import HTTPException, Request

from tubeaudio.config import Settings
from tubeaudio.services.converter import ConverterService


def get_service(request: Request) -> ConverterService:
    service = getattr(request.app.state, "converter", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Converter service not initialized")
    return service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
