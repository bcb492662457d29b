"""Map raw service responses onto a closed set of outcomes.

Pure functions only: no I/O, no transcript access, no logging.
"""
from __future__ import annotations

from dataclasses import dataclass

from querydesk.engine.errors import ErrorKind
from querydesk.models.job import JobStatus
from querydesk.models.remote import RemoteResponse, ResultItem
from querydesk.services.search_results import merge_results


@dataclass(frozen=True, slots=True)
class SearchResult:
    items: tuple[ResultItem, ...]
    primary: tuple[ResultItem, ...] = ()
    secondary: tuple[ResultItem, ...] = ()
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class JobStarted:
    job_id: str
    message: str | None = None
    progress_percent: float | None = None


@dataclass(frozen=True, slots=True)
class JobDone:
    job_id: str
    artifact_ref: str
    file_name: str | None = None


@dataclass(frozen=True, slots=True)
class DirectArtifact:
    artifact_ref: str
    file_name: str | None = None


@dataclass(frozen=True, slots=True)
class JobProgress:
    job_id: str
    status: JobStatus
    message: str | None = None
    progress_percent: float | None = None
    estimated_seconds_left: float | None = None
    elapsed_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class JobFailed:
    job_id: str | None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ClassificationFailure:
    reason: str
    kind: ErrorKind = ErrorKind.REMOTE_CLASSIFICATION_ERROR


SubmissionOutcome = SearchResult | JobStarted | JobDone | DirectArtifact | JobFailed | ClassificationFailure
PollOutcome = JobProgress | JobDone | JobFailed | ClassificationFailure


def _parse_status(raw: str | None) -> JobStatus | None:
    if raw is None:
        return None
    try:
        return JobStatus(raw)
    except ValueError:
        return None


def _describe(response: RemoteResponse) -> str:
    fields = sorted(
        name
        for name, value in response.model_dump(exclude_defaults=True).items()
        if value not in (None, [], "")
    )
    return ", ".join(fields) or "empty body"


def classify_submission(response: RemoteResponse) -> SubmissionOutcome:
    """Classify the single response to a submitted query."""
    if response.unrecognized_kind:
        return ClassificationFailure(f"unknown response type '{response.unrecognized_kind}'")

    has_results = response.items is not None or response.secondary_items is not None
    if response.kind == "results" or (response.kind is None and has_results):
        primary = tuple(response.items or ())
        secondary = tuple(response.secondary_items or ())
        return SearchResult(
            items=merge_results(primary, secondary),
            primary=primary,
            secondary=secondary,
            keywords=tuple(response.keywords),
        )

    if response.kind == "artifact" or (response.kind is None and response.content_type and not response.job_id):
        if not response.artifact_ref:
            return ClassificationFailure("artifact response without an artifact reference")
        return DirectArtifact(artifact_ref=response.artifact_ref, file_name=response.file_name)

    status = _parse_status(response.status)
    if response.status is not None and status is None:
        return ClassificationFailure(f"unknown job status '{response.status}'")

    if response.job_id is None:
        if response.kind == "job" and response.artifact_ref:
            # Finished job reported without correlation id.
            return DirectArtifact(artifact_ref=response.artifact_ref, file_name=response.file_name)
        return ClassificationFailure(f"unrecognized response shape ({_describe(response)})")

    if status == JobStatus.FAILED:
        return JobFailed(job_id=response.job_id, reason=response.error or response.message)

    if status == JobStatus.COMPLETED:
        if not response.artifact_ref:
            return ClassificationFailure(f"job {response.job_id} completed without an artifact reference")
        return JobDone(job_id=response.job_id, artifact_ref=response.artifact_ref, file_name=response.file_name)

    if status is None and response.artifact_ref:
        return JobDone(job_id=response.job_id, artifact_ref=response.artifact_ref, file_name=response.file_name)

    if status is not None or response.kind == "job":
        return JobStarted(
            job_id=response.job_id,
            message=response.message,
            progress_percent=response.progress_percent,
        )

    return ClassificationFailure(f"unrecognized response shape ({_describe(response)})")


def classify_poll(response: RemoteResponse, job_id: str) -> PollOutcome:
    """Classify one progress-poll response for ``job_id``."""
    status = _parse_status(response.status)
    if status is None:
        raw = response.status or "missing"
        return ClassificationFailure(f"unknown job status '{raw}' for job {job_id}")

    if status == JobStatus.COMPLETED:
        if not response.artifact_ref:
            return ClassificationFailure(f"job {job_id} completed without an artifact reference")
        return JobDone(job_id=job_id, artifact_ref=response.artifact_ref, file_name=response.file_name)

    if status == JobStatus.FAILED:
        return JobFailed(job_id=job_id, reason=response.error or response.message)

    return JobProgress(
        job_id=job_id,
        status=status,
        message=response.message,
        progress_percent=response.progress_percent,
        estimated_seconds_left=response.estimated_seconds_left,
        elapsed_seconds=response.elapsed_seconds,
    )
