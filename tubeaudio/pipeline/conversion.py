"""Per-job conversion state machine.

pending -> processing -> completed | failed

Each run owns exactly one job and talks to the rest of the world only
through the job store, the artifact store and the two external
collaborators. If the job disappears from the store mid-run (deleted by
the client) the run stops quietly instead of recreating it.
"""

import asyncio
import logging
import re
import time
from typing import Optional

from tubeaudio.errors import StorageFault
from tubeaudio.jobs.models import JobPatch, JobRecord, JobStatus, utcnow
from tubeaudio.jobs.store import JobStore
from tubeaudio.pipeline.sources import MediaSource
from tubeaudio.pipeline.transcoder import Transcoder
from tubeaudio.storage.artifacts import ArtifactStore

logger = logging.getLogger(__name__)

ACCEPTED_PROGRESS = 5
INFO_PROGRESS = 15
TRANSCODE_CEILING = 95

_UNSAFE_TITLE_CHARS = re.compile(r"[^\w\s-]", re.ASCII)


class JobVanished(Exception):
    """The job record was deleted while its pipeline was still running."""


def sanitize_title(title: str) -> str:
    """Drop characters that are unsafe in a file name."""
    return _UNSAFE_TITLE_CHARS.sub("", title or "").strip()


def clamp_progress(fraction: float) -> int:
    """Map a transcoder fraction to a percentage inside the transcoding band."""
    percent = round((fraction or 0.0) * 100)
    return min(max(percent, INFO_PROGRESS), TRANSCODE_CEILING)


def storage_key(job_id: int, fmt: str = "mp3") -> str:
    return f"{job_id}_{int(time.time() * 1000)}.{fmt}"


def display_name(title: Optional[str], job_id: int, fmt: str = "mp3") -> str:
    return f"{title or 'audio'}_{job_id}.{fmt}"


class ConversionPipeline:
    """Drives one job at a time from pending to a terminal state."""

    def __init__(
        self,
        store: JobStore,
        artifacts: ArtifactStore,
        source: MediaSource,
        transcoder: Transcoder,
        bitrate: int = 128,
        quality: str = "highestaudio",
        fmt: str = "mp3",
    ):
        self._store = store
        self._artifacts = artifacts
        self._source = source
        self._transcoder = transcoder
        self._bitrate = bitrate
        self._quality = quality
        self._fmt = fmt

    async def run(self, job_id: int) -> None:
        key = None
        try:
            job = self._store.get(job_id)
            if job is None:
                return
            self._apply(job_id, JobPatch(status=JobStatus.PROCESSING, progress=ACCEPTED_PROGRESS))

            info = await self._source.fetch_info(job.url)
            title = sanitize_title(info.title)
            self._apply(job_id, JobPatch(title=title, progress=INFO_PROGRESS))

            key = storage_key(job_id, self._fmt)
            file_name = display_name(title, job_id, self._fmt)
            await self._transcode(job, key, info.duration)

            file_size = self._artifacts.size(key)
            self._apply(job_id, JobPatch(
                status=JobStatus.COMPLETED,
                progress=100,
                file_path=key,
                file_name=file_name,
                file_size=file_size,
                completed_at=utcnow(),
            ))
            logger.info("Conversion %s completed: %s (%d bytes)", job_id, file_name, file_size)

        except JobVanished:
            logger.info("Conversion %s was deleted while running; stopping", job_id)
            self._discard(key)
        except StorageFault as exc:
            logger.warning("Conversion %s stopped, job store unavailable: %s", job_id, exc)
            self._discard(key)
        except asyncio.CancelledError:
            self._discard(key)
            raise
        except Exception as exc:
            logger.error("Conversion %s failed: %s", job_id, exc)
            self._discard(key)
            self._fail(job_id, exc)

    async def _transcode(self, job: JobRecord, key: str, duration: Optional[float]) -> None:
        last_written = INFO_PROGRESS

        def on_progress(fraction: float) -> None:
            nonlocal last_written
            percent = clamp_progress(fraction)
            # out-of-order callbacks never move the bar backwards
            if percent <= last_written:
                return
            last_written = percent
            self._apply(job.id, JobPatch(progress=percent))

        with self._artifacts.open_write(key) as sink:
            async with self._source.open_audio_stream(job.url, self._quality) as chunks:
                await self._transcoder.transcode(
                    chunks,
                    sink,
                    bitrate=self._bitrate,
                    fmt=self._fmt,
                    duration=duration,
                    on_progress=on_progress,
                )

    def _apply(self, job_id: int, patch: JobPatch) -> JobRecord:
        updated = self._store.update(job_id, patch)
        if updated is None:
            raise JobVanished(job_id)
        return updated

    def _fail(self, job_id: int, exc: Exception) -> None:
        message = str(exc) or "Unknown error occurred"
        try:
            self._store.update(job_id, JobPatch(status=JobStatus.FAILED, error_message=message))
        except StorageFault as fault:
            logger.warning("Could not record failure of conversion %s: %s", job_id, fault)

    def _discard(self, key: Optional[str]) -> None:
        if key is not None:
            self._artifacts.remove(key)
