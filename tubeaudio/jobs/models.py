"""Job and user records for the conversion store."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional
from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_move_to(self, target: "JobStatus") -> bool:
        """Forward-only transitions; re-writing the same status is allowed."""
        if target is self:
            return not self.is_terminal
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    """Tracks the lifecycle of one conversion request."""
    id: int
    url: str
    title: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class JobPatch(BaseModel):
    """Partial update for a job. Only explicitly set fields are applied."""
    title: Optional[str] = None
    status: Optional[JobStatus] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class UserRecord(BaseModel):
    id: int
    username: str
    password: str
