"""Media source interface and the yt-dlp backed implementation.

A source answers three questions about a reference: is it one we can
handle, what is it called, and what are its audio bytes.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, Optional
from urllib.parse import parse_qs, urlsplit

from tubeaudio.errors import SourceUnavailable

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024

_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")

# Hosts that carry the id in ?v=
_QUERY_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "gaming.youtube.com",
}
# Hosts that carry the id in the path
_PATH_HOSTS = {"youtu.be", "youtube.com", "www.youtube.com", "m.youtube.com",
               "youtube-nocookie.com", "www.youtube-nocookie.com"}
_PATH_PREFIXES = ("embed", "v", "shorts", "live")


@dataclass
class MediaInfo:
    """Metadata discovered for a reference."""
    title: str
    duration: Optional[float] = None


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id of a YouTube URL, or None."""
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme not in ("http", "https"):
        return None
    host = (parts.hostname or "").lower()

    if host in _QUERY_HOSTS and parts.path.rstrip("/") == "/watch":
        candidate = parse_qs(parts.query).get("v", [""])[0]
        return candidate if _VIDEO_ID.match(candidate) else None

    if host in _PATH_HOSTS:
        segments = [s for s in parts.path.split("/") if s]
        if host == "youtu.be" and segments:
            candidate = segments[0]
        elif len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
            candidate = segments[1]
        else:
            return None
        return candidate if _VIDEO_ID.match(candidate) else None

    return None


class MediaSource(ABC):
    """Abstract interface to the media extraction backend."""

    @abstractmethod
    def validate_reference(self, url: str) -> bool:
        """Cheap syntactic check. Never touches the network."""
        ...

    @abstractmethod
    async def fetch_info(self, url: str) -> MediaInfo:
        """Fetch metadata. Raises SourceUnavailable."""
        ...

    @abstractmethod
    def open_audio_stream(self, url: str, quality: str) -> AsyncContextManager[AsyncIterator[bytes]]:
        """Async context manager yielding an async iterator of audio bytes.

        Raises SourceUnavailable on entry or while iterating.
        """
        ...


class YtDlpSource(MediaSource):
    """Runs the ``yt-dlp`` executable for metadata and audio extraction."""

    def __init__(self, executable: str = "yt-dlp"):
        self._executable = executable

    def validate_reference(self, url: str) -> bool:
        return extract_video_id(url) is not None

    async def _spawn(self, *args: str) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self._executable, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise SourceUnavailable(f"{self._executable} executable not found") from exc

    async def fetch_info(self, url: str) -> MediaInfo:
        proc = await self._spawn("--dump-single-json", "--no-playlist", "--skip-download", "--", url)
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise SourceUnavailable(_last_line(stderr) or f"Could not fetch info for {url}")
        try:
            payload = json.loads(stdout)
        except ValueError as exc:
            raise SourceUnavailable(f"Unreadable metadata for {url}") from exc

        title = payload.get("title")
        if not title:
            raise SourceUnavailable(f"No title in metadata for {url}")
        duration = payload.get("duration")
        return MediaInfo(title=title, duration=float(duration) if duration else None)

    @asynccontextmanager
    async def open_audio_stream(self, url: str, quality: str = "highestaudio"):
        fmt = "bestaudio/best" if quality == "highestaudio" else "worstaudio/worst"
        proc = await self._spawn("-f", fmt, "--no-playlist", "--quiet", "--no-part", "-o", "-", "--", url)
        stderr_task = asyncio.ensure_future(proc.stderr.read())

        async def chunks() -> AsyncIterator[bytes]:
            while True:
                chunk = await proc.stdout.read(_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
            returncode = await proc.wait()
            if returncode != 0:
                stderr = await stderr_task
                raise SourceUnavailable(_last_line(stderr) or f"Audio stream failed for {url}")

        try:
            yield chunks()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()
            await asyncio.gather(stderr_task, return_exceptions=True)


def _last_line(raw: bytes) -> str:
    lines = [line.strip() for line in raw.decode("utf-8", "replace").splitlines() if line.strip()]
    return lines[-1] if lines else ""
