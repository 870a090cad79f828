"""Bulk download: bundle completed artifacts into one streamed ZIP."""

import io
import logging
import os
import zipfile
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Set

from tubeaudio.jobs.models import JobStatus
from tubeaudio.jobs.store import JobStore
from tubeaudio.services.lifecycle import DEFAULT_FILE_NAME
from tubeaudio.storage.artifacts import ArtifactStore

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "converted_files.zip"
_READ_SIZE = 256 * 1024


@dataclass
class ArchiveEntry:
    job_id: int
    key: str
    name: str


class _ChunkSink(io.RawIOBase):
    """Write-only, non-seekable buffer that ZipFile writes into.

    ZipFile falls back to data descriptors on a non-seekable file, so
    entries can be emitted as soon as they are written.
    """

    def __init__(self):
        super().__init__()
        self._chunks: List[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def take(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ArchiveStream:
    """Iterates the bytes of a ZIP built from the given entries."""

    def __init__(self, artifacts: ArtifactStore, entries: List[ArchiveEntry], name: str = ARCHIVE_NAME):
        self._artifacts = artifacts
        self.entries = entries
        self.name = name

    def __iter__(self) -> Iterator[bytes]:
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for entry in self.entries:
                try:
                    src = open(self._artifacts.path_for(entry.key), "rb")
                except OSError:
                    logger.warning("Skipping job %s in archive: artifact %s is gone", entry.job_id, entry.key)
                    continue
                with src, zf.open(entry.name, "w") as dest:
                    while True:
                        block = src.read(_READ_SIZE)
                        if not block:
                            break
                        dest.write(block)
                        data = sink.take()
                        if data:
                            yield data
                data = sink.take()
                if data:
                    yield data
        tail = sink.take()
        if tail:
            yield tail


class ArchiveAssembler:
    def __init__(self, store: JobStore, artifacts: ArtifactStore):
        self._store = store
        self._artifacts = artifacts

    def prepare(self, job_ids: Iterable[int]) -> Optional[ArchiveStream]:
        """Resolve ids to downloadable entries. None when nothing qualifies.

        Unknown ids, jobs that are not completed and jobs whose artifact is
        missing are dropped silently. Input order is kept.
        """
        entries: List[ArchiveEntry] = []
        seen_ids: Set[int] = set()
        used_names: Set[str] = set()
        for job_id in job_ids:
            if job_id in seen_ids:
                continue
            seen_ids.add(job_id)
            job = self._store.get(job_id)
            if job is None or job.status != JobStatus.COMPLETED or not job.file_path:
                continue
            if not self._artifacts.exists(job.file_path):
                continue
            name = _unique_name(job.file_name or DEFAULT_FILE_NAME, used_names)
            entries.append(ArchiveEntry(job_id=job.id, key=job.file_path, name=name))

        if not entries:
            return None
        return ArchiveStream(self._artifacts, entries)


def _unique_name(name: str, used: Set[str]) -> str:
    candidate = name
    stem, ext = os.path.splitext(name)
    n = 2
    while candidate in used:
        candidate = f"{stem} ({n}){ext}"
        n += 1
    used.add(candidate)
    return candidate
