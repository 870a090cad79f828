"""Download API.

  GET  /download/{job_id}  : the MP3 of one completed job
  POST /download/bulk      : several completed jobs as one streamed ZIP
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import BaseModel

from tubeaudio.api.deps import get_service
from tubeaudio.services.converter import ConverterService

router = APIRouter()


class BulkDownloadRequest(BaseModel):
    ids: List[int]


@router.get("/download/{job_id}")
async def download_file(job_id: int, service: ConverterService = Depends(get_service)):
    download = service.download_single(job_id)
    if download is None:
        raise HTTPException(status_code=404, detail="File not found or conversion not completed")
    return FileResponse(download.path, media_type="audio/mpeg", filename=download.file_name)


@router.post("/download/bulk")
async def download_bulk(
    request: BulkDownloadRequest,
    service: ConverterService = Depends(get_service),
):
    """Stream a ZIP of every completed job among ``ids``.

    Unknown or unfinished ids are skipped; 404 only when none qualify.
    """
    if not request.ids:
        raise HTTPException(status_code=400, detail="Invalid file IDs")

    archive = service.download_bulk(request.ids)
    if archive is None:
        raise HTTPException(status_code=404, detail="No valid files found for download")

    return StreamingResponse(
        iter(archive),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive.name}"'},
    )
