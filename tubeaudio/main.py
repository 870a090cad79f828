"""TubeAudio conversion backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tubeaudio.api.v1.router import api_router
from tubeaudio.config import Settings
from tubeaudio.errors import InvalidTransition, StorageFault, ValidationError
from tubeaudio.jobs.in_process_queue import InProcessQueue
from tubeaudio.jobs.store import InMemoryJobStore, JobStore
from tubeaudio.logging_utils import setup_logging
from tubeaudio.pipeline.conversion import ConversionPipeline
from tubeaudio.pipeline.sources import MediaSource, YtDlpSource
from tubeaudio.pipeline.transcoder import FfmpegTranscoder, Transcoder
from tubeaudio.services.archive import ArchiveAssembler
from tubeaudio.services.converter import ConverterService
from tubeaudio.services.lifecycle import ArtifactLifecycle
from tubeaudio.services.submission import SubmissionCoordinator
from tubeaudio.storage.artifacts import ArtifactStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    source: Optional[MediaSource] = None,
    transcoder: Optional[Transcoder] = None,
    store: Optional[JobStore] = None,
) -> FastAPI:
    """Build the application. Collaborators default to yt-dlp, ffmpeg and memory."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        setup_logging("tubeaudio", settings.log_level)
        logger.info("Starting TubeAudio on port %s", settings.port)
        logger.info("Downloads dir: %s", settings.downloads_dir)

        job_store = store or InMemoryJobStore()
        artifacts = ArtifactStore(settings.downloads_dir, ttl_hours=settings.artifact_ttl_hours)
        media_source = source or YtDlpSource(settings.ytdlp_path)

        pipeline = ConversionPipeline(
            job_store,
            artifacts,
            media_source,
            transcoder or FfmpegTranscoder(settings.ffmpeg_path),
            bitrate=settings.audio_bitrate,
            quality=settings.audio_quality,
        )
        dispatcher = InProcessQueue(worker_fn=pipeline.run, max_concurrent=settings.max_concurrent_jobs)
        await dispatcher.start()

        app.state.settings = settings
        app.state.dispatcher = dispatcher
        app.state.converter = ConverterService(
            job_store,
            SubmissionCoordinator(job_store, media_source, dispatcher, max_batch=settings.max_bulk_urls),
            ArtifactLifecycle(job_store, artifacts),
            ArchiveAssembler(job_store, artifacts),
        )

        yield

        logger.info("Shutting down TubeAudio")
        await dispatcher.stop()
        artifacts.cleanup_expired()
        app.state.converter = None

    app = FastAPI(
        title="TubeAudio",
        description="Convert video links to MP3 and download them singly or as a ZIP",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StorageFault)
    async def storage_fault_handler(request: Request, exc: StorageFault):
        logger.error("Storage fault on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    @app.exception_handler(InvalidTransition)
    async def transition_handler(request: Request, exc: InvalidTransition):
        logger.error("Invalid job transition: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    app.include_router(api_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = app.state.settings
    uvicorn.run("tubeaudio.main:app", host=_settings.host, port=_settings.port)
