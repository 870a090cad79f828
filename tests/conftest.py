"""Shared fixtures: fake media source and transcoder, stores on tmp_path."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Set

import pytest

from tubeaudio.errors import SourceUnavailable, TranscodeFailure
from tubeaudio.jobs.models import JobPatch, JobStatus
from tubeaudio.jobs.store import InMemoryJobStore
from tubeaudio.pipeline.conversion import ConversionPipeline
from tubeaudio.pipeline.sources import MediaInfo, MediaSource, extract_video_id
from tubeaudio.pipeline.transcoder import Transcoder
from tubeaudio.storage.artifacts import ArtifactStore

logging.getLogger("tubeaudio").setLevel(logging.DEBUG)

VALID_URLS = [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://youtu.be/9bZkp7q19f0",
    "https://m.youtube.com/watch?v=kJQP7kiw5Fk",
    "https://www.youtube.com/shorts/aqz-KE-bpKQ",
    "https://music.youtube.com/watch?v=OPf0YbXqDm0",
    "https://www.youtube.com/embed/RgKAFK5djSk",
    "https://youtube.com/watch?v=JGwWNGJdvx8",
    "https://www.youtube.com/watch?v=fJ9rUzIMcZQ",
    "https://youtu.be/hT_nvWreIhg",
    "https://www.youtube.com/watch?v=YQHsXMglC9A",
    "https://www.youtube.com/watch?v=2Vv-BfVoq4g",
]


class FakeSource(MediaSource):
    """In-memory stand-in for yt-dlp."""

    def __init__(self):
        self.titles: Dict[str, str] = {}
        self.durations: Dict[str, float] = {}
        self.unavailable: Set[str] = set()
        self.broken_streams: Set[str] = set()
        self.info_gate: Optional[asyncio.Event] = None
        self.chunks: List[bytes] = [b"\x00" * 1024, b"\x01" * 1024]

    def validate_reference(self, url: str) -> bool:
        return extract_video_id(url) is not None

    async def fetch_info(self, url: str) -> MediaInfo:
        if self.info_gate is not None:
            await self.info_gate.wait()
        if url in self.unavailable:
            raise SourceUnavailable("Video unavailable")
        title = self.titles.get(url, f"Video {extract_video_id(url)}")
        return MediaInfo(title=title, duration=self.durations.get(url, 60.0))

    @asynccontextmanager
    async def open_audio_stream(self, url: str, quality: str = "highestaudio"):
        broken = url in self.broken_streams
        chunks = list(self.chunks)

        async def gen():
            for chunk in chunks:
                await asyncio.sleep(0)
                yield chunk
            if broken:
                raise SourceUnavailable("Stream interrupted")

        yield gen()


class FakeTranscoder(Transcoder):
    """Copies input to the sink and replays scripted progress fractions."""

    def __init__(self):
        self.fractions: List[float] = [0.0, 0.25, 0.5, 0.9]
        self.fail_with: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.calls: List[dict] = []

    async def transcode(self, source, sink, *, bitrate, fmt, duration=None, on_progress=None):
        self.calls.append({"bitrate": bitrate, "fmt": fmt, "duration": duration})
        self.started.set()
        sink.write(b"ID3")
        async for chunk in source:
            sink.write(chunk)
        for fraction in self.fractions:
            if on_progress is not None:
                on_progress(fraction)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with:
            raise TranscodeFailure(self.fail_with)


class RecordingStore(InMemoryJobStore):
    """Keeps every patch applied so tests can check write order."""

    def __init__(self):
        super().__init__()
        self.patches: List[tuple] = []

    def update(self, job_id: int, patch: JobPatch):
        result = super().update(job_id, patch)
        if result is not None:
            self.patches.append((job_id, patch.changes()))
        return result


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def artifacts(tmp_path):
    return ArtifactStore(str(tmp_path / "downloads"))


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def pipeline(store, artifacts, source, transcoder):
    return ConversionPipeline(store, artifacts, source, transcoder)


def completed_job(store, artifacts, url=VALID_URLS[0], name="Song_1.mp3", payload=b"mp3-bytes"):
    """Put a finished job with a real artifact straight into the store."""
    job = store.create(url)
    key = f"{job.id}_artifact.mp3"
    with artifacts.open_write(key) as fh:
        fh.write(payload)
    store.update(job.id, JobPatch(status=JobStatus.PROCESSING, progress=5))
    return store.update(job.id, JobPatch(
        status=JobStatus.COMPLETED,
        progress=100,
        file_path=key,
        file_name=name,
        file_size=len(payload),
    ))


def failed_job(store, url=VALID_URLS[1], message="Video unavailable"):
    job = store.create(url)
    store.update(job.id, JobPatch(status=JobStatus.PROCESSING, progress=5))
    return store.update(job.id, JobPatch(status=JobStatus.FAILED, error_message=message))
