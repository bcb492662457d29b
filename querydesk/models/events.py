from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    SUBMISSION_ACCEPTED = "submission_accepted"
    SUBMISSION_FAILED = "submission_failed"
    SEARCH_COMPLETED = "search_completed"
    ARTIFACT_READY = "artifact_ready"
    JOB_STARTED = "job_started"
    JOB_PROGRESS = "job_progress"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_TIMED_OUT = "job_timed_out"
    JOB_CANCELLED = "job_cancelled"
    SESSION_RESET = "session_reset"


@dataclass
class SessionEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)
