"""Aggregate all API routers."""

from fastapi import APIRouter
from tubeaudio.api.v1.health import router as health_router
from tubeaudio.api.v1.conversions import router as conversions_router
from tubeaudio.api.v1.downloads import router as downloads_router

api_router = APIRouter(prefix="/api")
api_router.include_router(health_router, tags=["health"])
api_router.include_router(conversions_router, tags=["conversions"])
api_router.include_router(downloads_router, tags=["downloads"])
