"""Job store interface and in-memory implementation."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from tubeaudio.errors import InvalidTransition, ValidationError
from tubeaudio.jobs.models import (
    JobPatch,
    JobRecord,
    JobStatus,
    UserRecord,
    utcnow,
)
from tubeaudio.jobs.sequence import IdSequence

logger = logging.getLogger(__name__)


class JobStore(ABC):
    """Abstract interface for job storage (memory or a durable backend).

    Every operation is atomic with respect to the others. ``update`` on a
    missing id returns None: the job was deleted and the caller should stop.
    """

    @abstractmethod
    def create(self, url: str) -> JobRecord:
        ...

    @abstractmethod
    def get(self, job_id: int) -> Optional[JobRecord]:
        ...

    @abstractmethod
    def list(self) -> List[JobRecord]:
        """All jobs, most recently created first."""
        ...

    @abstractmethod
    def update(self, job_id: int, patch: JobPatch) -> Optional[JobRecord]:
        ...

    @abstractmethod
    def delete(self, job_id: int) -> bool:
        ...

    @abstractmethod
    def list_by_status(self, status: JobStatus) -> List[JobRecord]:
        ...

    @abstractmethod
    def create_user(self, username: str, password: str) -> UserRecord:
        ...

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...


class InMemoryJobStore(JobStore):
    """Process-lifetime store guarded by a single lock.

    Records handed out are copies, so callers can never see or cause a
    half-applied update.
    """

    def __init__(self):
        self._jobs: Dict[int, JobRecord] = {}
        self._users: Dict[int, UserRecord] = {}
        self._job_ids = IdSequence()
        self._user_ids = IdSequence()
        self._lock = threading.Lock()

    def create(self, url: str) -> JobRecord:
        with self._lock:
            job = JobRecord(id=self._job_ids.next(), url=url, created_at=utcnow())
            self._jobs[job.id] = job
            return job.model_copy()

    def get(self, job_id: int) -> Optional[JobRecord]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def list(self) -> List[JobRecord]:
        with self._lock:
            jobs = [job.model_copy() for job in self._jobs.values()]
        jobs.sort(key=lambda j: (j.created_at, j.id), reverse=True)
        return jobs

    def update(self, job_id: int, patch: JobPatch) -> Optional[JobRecord]:
        changes = patch.changes()
        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is None:
                return None
            if existing.status.is_terminal:
                raise InvalidTransition(
                    job_id, existing.status.value,
                    changes.get("status", existing.status).value,
                )
            target = changes.get("status")
            if target is not None and not existing.status.can_move_to(target):
                raise InvalidTransition(job_id, existing.status.value, target.value)

            updated = existing.model_copy(update=changes)
            self._jobs[job_id] = updated
            return updated.model_copy()

    def delete(self, job_id: int) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_by_status(self, status: JobStatus) -> List[JobRecord]:
        return [job for job in self.list() if job.status == status]

    def create_user(self, username: str, password: str) -> UserRecord:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise ValidationError(f"Username '{username}' is already taken")
            user = UserRecord(id=self._user_ids.next(), username=username, password=password)
            self._users[user.id] = user
            logger.debug("Created user %s (%s)", user.id, username)
            return user.model_copy()

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user.model_copy()
        return None
