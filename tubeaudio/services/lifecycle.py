"""Ownership of the link between a job and its artifact file."""

import logging
from dataclasses import dataclass
from typing import Optional

from tubeaudio.jobs.models import JobStatus
from tubeaudio.jobs.store import JobStore
from tubeaudio.storage.artifacts import ArtifactStore

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "audio.mp3"


@dataclass
class Download:
    path: str
    file_name: str
    size: Optional[int] = None


class ArtifactLifecycle:
    def __init__(self, store: JobStore, artifacts: ArtifactStore):
        self._store = store
        self._artifacts = artifacts

    def delete(self, job_id: int) -> bool:
        """Remove a job and, best effort, its artifact.

        Returns False when there was no such job. Artifact removal problems
        are logged and never stop the record from being deleted.
        """
        job = self._store.get(job_id)
        if job is not None and job.file_path:
            if not self._artifacts.remove(job.file_path):
                logger.debug("No artifact removed for job %s (%s)", job_id, job.file_path)
        deleted = self._store.delete(job_id)
        if deleted:
            logger.info("Deleted conversion %s", job_id)
        return deleted

    def download(self, job_id: int) -> Optional[Download]:
        """Resolve a completed job to its artifact, or None."""
        job = self._store.get(job_id)
        if job is None or job.status != JobStatus.COMPLETED or not job.file_path:
            return None
        if not self._artifacts.exists(job.file_path):
            logger.warning("Artifact for job %s is missing: %s", job_id, job.file_path)
            return None
        return Download(
            path=self._artifacts.path_for(job.file_path),
            file_name=job.file_name or DEFAULT_FILE_NAME,
            size=job.file_size,
        )
