"""Conversion job API: submit, poll, list and delete jobs."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tubeaudio.api.deps import get_service
from tubeaudio.jobs.models import JobRecord, JobStatus
from tubeaudio.services.converter import ConverterService

router = APIRouter()


class ConversionRequest(BaseModel):
    url: str


class BulkConversionRequest(BaseModel):
    urls: List[str]


class ConversionStats(BaseModel):
    total: int
    today: int
    success_rate: int
    avg_size_bytes: int


@router.get("/conversions", response_model=List[JobRecord])
async def list_conversions(
    status: Optional[JobStatus] = None,
    service: ConverterService = Depends(get_service),
):
    """All conversions, newest first. Poll this to follow progress."""
    return service.list(status)


@router.post("/conversions", response_model=JobRecord)
async def create_conversion(
    request: ConversionRequest,
    service: ConverterService = Depends(get_service),
):
    """Submit one URL. Returns the pending job immediately."""
    return service.create_single(request.url)


@router.post("/conversions/bulk", response_model=List[JobRecord])
async def create_bulk_conversions(
    request: BulkConversionRequest,
    service: ConverterService = Depends(get_service),
):
    """Submit up to ten URLs. Any invalid URL rejects the whole batch."""
    return service.create_bulk(request.urls)


@router.get("/conversions/stats", response_model=ConversionStats)
async def conversion_stats(service: ConverterService = Depends(get_service)):
    return service.stats()


@router.get("/conversions/{job_id}", response_model=JobRecord)
async def get_conversion(job_id: int, service: ConverterService = Depends(get_service)):
    job = service.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Conversion not found")
    return job


@router.delete("/conversions/{job_id}")
async def delete_conversion(job_id: int, service: ConverterService = Depends(get_service)):
    if not service.delete(job_id):
        raise HTTPException(status_code=404, detail="Conversion not found")
    return {"message": "Conversion deleted successfully"}
