"""Single and bulk job submission."""

import logging
from typing import List, Sequence

from tubeaudio.errors import ValidationError
from tubeaudio.jobs.dispatcher import JobDispatcher
from tubeaudio.jobs.models import JobRecord
from tubeaudio.jobs.store import JobStore
from tubeaudio.pipeline.sources import MediaSource

logger = logging.getLogger(__name__)


class SubmissionCoordinator:
    """Validates references, creates jobs and hands them to the dispatcher.

    Validation is all-or-nothing: a batch with one bad reference creates
    no jobs at all.
    """

    def __init__(
        self,
        store: JobStore,
        source: MediaSource,
        dispatcher: JobDispatcher,
        max_batch: int = 10,
    ):
        self._store = store
        self._source = source
        self._dispatcher = dispatcher
        self._max_batch = max_batch

    def submit_one(self, url: str) -> JobRecord:
        url = self._check(url)
        return self._start(url)

    def submit_many(self, urls: Sequence[str]) -> List[JobRecord]:
        if isinstance(urls, str):
            raise ValidationError("Expected a list of URLs")
        urls = list(urls)
        if not 1 <= len(urls) <= self._max_batch:
            raise ValidationError(
                f"Between 1 and {self._max_batch} URLs are required, got {len(urls)}"
            )
        checked = [self._check(u) for u in urls]

        jobs = [self._start(u) for u in checked]
        logger.info("Accepted batch of %d conversion(s)", len(jobs))
        return jobs

    def _check(self, url: str) -> str:
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL is required")
        url = url.strip()
        if not self._source.validate_reference(url):
            raise ValidationError(f"Invalid YouTube URL: {url}")
        return url

    def _start(self, url: str) -> JobRecord:
        job = self._store.create(url)
        self._dispatcher.launch(job.id)
        logger.debug("Job %s queued for %s", job.id, url)
        return job
