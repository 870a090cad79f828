"""Transcoder interface and the ffmpeg implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, BinaryIO, Callable, List, Optional

from tubeaudio.errors import TranscodeFailure

logger = logging.getLogger(__name__)

# fn(fraction_complete) with fraction in [0.0, 1.0]
ProgressCallback = Callable[[float], None]

_CHUNK_SIZE = 64 * 1024


class Transcoder(ABC):
    """Abstract interface for turning an audio byte stream into a target format."""

    @abstractmethod
    async def transcode(
        self,
        source: AsyncIterator[bytes],
        sink: BinaryIO,
        *,
        bitrate: int,
        fmt: str,
        duration: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Write transcoded bytes to ``sink``. Raises TranscodeFailure.

        Errors raised by ``source`` or ``on_progress`` abort the transcode
        and propagate unchanged.
        """
        ...


class FfmpegTranscoder(Transcoder):
    """Pipes the source into ``ffmpeg`` and the encoded output into the sink.

    Progress comes from ``-progress pipe:2``; ``out_time_us`` divided by the
    media duration gives the fraction. Without a duration no progress is
    reported.
    """

    def __init__(self, executable: str = "ffmpeg"):
        self._executable = executable

    def build_args(self, bitrate: int, fmt: str) -> List[str]:
        return [
            "-hide_banner", "-nostats", "-loglevel", "error",
            "-i", "pipe:0",
            "-vn",
            "-b:a", f"{bitrate}k",
            "-f", fmt,
            "-progress", "pipe:2",
            "pipe:1",
        ]

    async def transcode(
        self,
        source: AsyncIterator[bytes],
        sink: BinaryIO,
        *,
        bitrate: int,
        fmt: str,
        duration: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable, *self.build_args(bitrate, fmt),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise TranscodeFailure(f"{self._executable} executable not found") from exc

        errors: List[str] = []

        async def feed() -> None:
            try:
                async for chunk in source:
                    proc.stdin.write(chunk)
                    await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                # ffmpeg exited early; the return code is checked below
                pass
            finally:
                if not proc.stdin.is_closing():
                    proc.stdin.close()

        async def collect() -> None:
            loop = asyncio.get_running_loop()
            while True:
                chunk = await proc.stdout.read(_CHUNK_SIZE)
                if not chunk:
                    break
                # file writes block; keep them off the event loop
                await loop.run_in_executor(None, sink.write, chunk)

        async def watch() -> None:
            async for raw in proc.stderr:
                line = raw.decode("utf-8", "replace").strip()
                key, sep, value = line.partition("=")
                if not sep or " " in key:
                    if line:
                        errors.append(line)
                    continue
                if key == "out_time_us" and duration and on_progress is not None:
                    try:
                        seconds = int(value) / 1_000_000
                    except ValueError:
                        continue
                    on_progress(max(0.0, min(1.0, seconds / duration)))

        tasks = [asyncio.ensure_future(step) for step in (feed(), collect(), watch())]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            if proc.returncode is None:
                proc.kill()
            await asyncio.gather(*tasks, return_exceptions=True)
            await proc.wait()
            raise

        returncode = await proc.wait()
        if returncode != 0:
            detail = errors[-1] if errors else f"exit code {returncode}"
            raise TranscodeFailure(f"ffmpeg failed: {detail}")
        logger.debug("ffmpeg finished (%s, %dk)", fmt, bitrate)
