from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from querydesk.models.remote import ResultItem


class Author(str, Enum):
    USER = "user"
    SYSTEM = "system"


class MessageKind(str, Enum):
    TEXT = "text"
    PROGRESS_UPDATE = "progress"
    FILE_READY = "file"
    ERROR_NOTICE = "error"


@dataclass(frozen=True, slots=True)
class Message:
    """One transcript entry.

    Instances are immutable; the transcript replaces an entry with an updated
    copy when a job's progress message changes, so snapshots handed out
    earlier never change under the reader.
    """

    id: str
    author: Author
    kind: MessageKind
    created_at: datetime
    text: str
    job_id: str | None = None
    progress_percent: float | None = None
    artifact_ref: str | None = None
    file_name: str | None = None
    results: tuple[ResultItem, ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls,
        author: Author,
        kind: MessageKind,
        text: str,
        **kwargs,
    ) -> Message:
        return cls(
            id=str(uuid4()),
            author=author,
            kind=kind,
            created_at=datetime.now(timezone.utc),
            text=text,
            **kwargs,
        )

    @property
    def is_live_progress(self) -> bool:
        return self.kind == MessageKind.PROGRESS_UPDATE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author": self.author.value,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat(),
            "text": self.text,
            "job_id": self.job_id,
            "progress_percent": self.progress_percent,
            "artifact_ref": self.artifact_ref,
            "file_name": self.file_name,
            "results": [item.model_dump() for item in self.results],
        }
