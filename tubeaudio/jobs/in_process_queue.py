"""In-process job runner using asyncio tasks.

Each submitted job gets its own task; a semaphore caps how many run their
external work at the same time. No external dependencies (Redis, Celery)
needed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from tubeaudio.jobs.dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Fire-and-forget asyncio dispatcher with bounded concurrency."""

    def __init__(self, worker_fn: Callable[[int], Awaitable[None]], max_concurrent: int = 4):
        """
        worker_fn: async callable(job_id) -> None
            Runs one job's pipeline to a terminal state. Expected to handle
            its own errors; anything that escapes is logged here.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._worker_fn = worker_fn
        self._max_concurrent = max_concurrent
        self._slots: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def launch(self, job_id: int) -> None:
        if not self._running:
            raise RuntimeError("Dispatcher is not running")
        task = asyncio.get_running_loop().create_task(
            self._run(job_id), name=f"conversion-{job_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    async def start(self) -> None:
        self._slots = asyncio.Semaphore(self._max_concurrent)
        self._running = True
        logger.info("Job dispatcher started (max %d concurrent)", self._max_concurrent)

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Job dispatcher stopped (%d job(s) cancelled)", len(tasks))

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, job_id: int) -> None:
        async with self._slots:
            await self._worker_fn(job_id)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Unhandled error in %s", task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )
