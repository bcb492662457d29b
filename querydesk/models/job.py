from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(slots=True)
class Job:
    """Client-side view of one long-running generation task.

    Progress fields are advisory and come from the latest poll response.
    ``started_at`` is the local clock reading when the job was first seen.
    """

    job_id: str
    started_at: float
    status: JobStatus = JobStatus.PROCESSING
    message: str | None = None
    progress_percent: float | None = None
    estimated_seconds_left: float | None = None
    elapsed_seconds: float | None = None

    def merge_progress(
        self,
        *,
        now: float,
        status: JobStatus | None = None,
        message: str | None = None,
        progress_percent: float | None = None,
        estimated_seconds_left: float | None = None,
        elapsed_seconds: float | None = None,
    ) -> None:
        """Fold one poll response in; omitted fields keep their previous value."""
        if status is not None:
            self.status = status
        if message:
            self.message = message
        if progress_percent is not None:
            self.progress_percent = progress_percent
        if estimated_seconds_left is not None:
            self.estimated_seconds_left = estimated_seconds_left
        if elapsed_seconds is not None:
            self.elapsed_seconds = elapsed_seconds
        else:
            self.elapsed_seconds = max(now - self.started_at, 0.0)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "message": self.message,
            "progress_percent": self.progress_percent,
            "estimated_seconds_left": self.estimated_seconds_left,
            "elapsed_seconds": self.elapsed_seconds,
        }
