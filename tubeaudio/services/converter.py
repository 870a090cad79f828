"""Core service boundary consumed by the HTTP layer."""

from typing import Dict, List, Optional, Sequence

from tubeaudio.jobs.models import JobRecord, JobStatus, utcnow
from tubeaudio.jobs.store import JobStore
from tubeaudio.services.archive import ArchiveAssembler, ArchiveStream
from tubeaudio.services.lifecycle import ArtifactLifecycle, Download
from tubeaudio.services.submission import SubmissionCoordinator


class ConverterService:
    """Create, observe, download and delete conversion jobs.

    Lookups that miss return None (or False for delete); validation
    problems raise ``tubeaudio.errors.ValidationError``.
    """

    def __init__(
        self,
        store: JobStore,
        submissions: SubmissionCoordinator,
        lifecycle: ArtifactLifecycle,
        archives: ArchiveAssembler,
    ):
        self.store = store
        self._submissions = submissions
        self._lifecycle = lifecycle
        self._archives = archives

    def create_single(self, url: str) -> JobRecord:
        return self._submissions.submit_one(url)

    def create_bulk(self, urls: Sequence[str]) -> List[JobRecord]:
        return self._submissions.submit_many(urls)

    def get(self, job_id: int) -> Optional[JobRecord]:
        return self.store.get(job_id)

    def list(self, status: Optional[JobStatus] = None) -> List[JobRecord]:
        if status is None:
            return self.store.list()
        return self.store.list_by_status(status)

    def delete(self, job_id: int) -> bool:
        return self._lifecycle.delete(job_id)

    def download_single(self, job_id: int) -> Optional[Download]:
        return self._lifecycle.download(job_id)

    def download_bulk(self, job_ids: Sequence[int]) -> Optional[ArchiveStream]:
        return self._archives.prepare(job_ids)

    def counts(self) -> Dict[str, int]:
        jobs = self.store.list()
        return {status.value: sum(1 for j in jobs if j.status == status) for status in JobStatus}

    def stats(self) -> Dict[str, object]:
        """Dashboard numbers: totals, today's count, success rate, mean size."""
        jobs = self.store.list()
        today = utcnow().date()
        completed = [j for j in jobs if j.status == JobStatus.COMPLETED]
        sized = [j.file_size for j in jobs if j.file_size]
        return {
            "total": len(jobs),
            "today": sum(1 for j in jobs if j.created_at.date() == today),
            "success_rate": round(100 * len(completed) / len(jobs)) if jobs else 0,
            "avg_size_bytes": round(sum(sized) / len(sized)) if sized else 0,
        }
