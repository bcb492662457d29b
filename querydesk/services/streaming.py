from __future__ import annotations

from typing import Any

from querydesk.models.events import EventType, SessionEvent


def submission_accepted(text: str, message_id: str) -> SessionEvent:
    return SessionEvent(
        event=EventType.SUBMISSION_ACCEPTED,
        data={"text": text, "message_id": message_id},
    )


def submission_failed(error_kind: str, message: str, **kwargs: Any) -> SessionEvent:
    return SessionEvent(
        event=EventType.SUBMISSION_FAILED,
        data={"error_kind": error_kind, "message": message, **kwargs},
    )


def search_completed(results_count: int, keywords: list[str] | None = None) -> SessionEvent:
    data: dict[str, Any] = {"results_count": results_count}
    if keywords:
        data["keywords"] = keywords
    return SessionEvent(event=EventType.SEARCH_COMPLETED, data=data)


def artifact_ready(artifact_ref: str, file_name: str | None = None) -> SessionEvent:
    data: dict[str, Any] = {"artifact_ref": artifact_ref}
    if file_name:
        data["file_name"] = file_name
    return SessionEvent(event=EventType.ARTIFACT_READY, data=data)


def job_started(job_id: str, message: str | None = None) -> SessionEvent:
    data: dict[str, Any] = {"job_id": job_id}
    if message:
        data["message"] = message
    return SessionEvent(event=EventType.JOB_STARTED, data=data)


def job_progress(job_id: str, **kwargs: Any) -> SessionEvent:
    return SessionEvent(event=EventType.JOB_PROGRESS, data={"job_id": job_id, **kwargs})


def job_completed(job_id: str, artifact_ref: str) -> SessionEvent:
    return SessionEvent(
        event=EventType.JOB_COMPLETED,
        data={"job_id": job_id, "artifact_ref": artifact_ref},
    )


def job_failed(job_id: str, error_kind: str, message: str) -> SessionEvent:
    return SessionEvent(
        event=EventType.JOB_FAILED,
        data={"job_id": job_id, "error_kind": error_kind, "message": message},
    )


def job_timed_out(job_id: str, budget_seconds: float) -> SessionEvent:
    return SessionEvent(
        event=EventType.JOB_TIMED_OUT,
        data={"job_id": job_id, "budget_seconds": budget_seconds},
    )


def job_cancelled(job_id: str, *, superseded: bool) -> SessionEvent:
    return SessionEvent(
        event=EventType.JOB_CANCELLED,
        data={"job_id": job_id, "superseded": superseded},
    )


def session_reset() -> SessionEvent:
    return SessionEvent(event=EventType.SESSION_RESET)
