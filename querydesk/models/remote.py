"""Wire models for responses of the remote query service.

The service has shipped two response shapes over time. Both are folded into
the canonical ``RemoteResponse`` below before validation:

    type "search"                      -> kind "results"
    type "exam" / "exam_progress"      -> kind "job"
    type "exam_download"               -> kind "artifact"
    requestId                          -> job_id
    orbiResults / sumanwhiResults      -> items / secondary_items
    progress                           -> progress_percent
    downloadUrl / examDownloadUrl      -> artifact_ref
    elapsedTimeSeconds                 -> elapsed_seconds
    estimatedSecondsLeft               -> estimated_seconds_left
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ResponseKind = Literal["results", "job", "artifact"]

LEGACY_TYPES: dict[str, ResponseKind] = {
    "search": "results",
    "exam": "job",
    "exam_progress": "job",
    "exam_download": "artifact",
}

LEGACY_FIELDS = {
    "type": "kind",
    "requestId": "job_id",
    "jobId": "job_id",
    "orbiResults": "items",
    "sumanwhiResults": "secondary_items",
    "progress": "progress_percent",
    "progressPercent": "progress_percent",
    "downloadUrl": "artifact_ref",
    "examDownloadUrl": "artifact_ref",
    "artifactRef": "artifact_ref",
    "elapsedTimeSeconds": "elapsed_seconds",
    "elapsedSeconds": "elapsed_seconds",
    "estimatedSecondsLeft": "estimated_seconds_left",
    "fileName": "file_name",
    "secondaryItems": "secondary_items",
}


class ResultItem(BaseModel):
    """One already-scored search hit."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str | None = None
    title: str = ""
    url: str = ""
    content: str = ""
    source: str | None = None
    timestamp: str | None = None
    comment_count: int | None = Field(default=None, alias="commentCount")
    relevance_score: float | None = Field(default=None, alias="relevanceScore")

    @property
    def score(self) -> float:
        return float(self.relevance_score or 0.0)


class RemoteResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: ResponseKind | None = None
    job_id: str | None = None
    status: str | None = None
    progress_percent: float | None = None
    estimated_seconds_left: float | None = None
    elapsed_seconds: float | None = None
    message: str | None = None
    error: str | None = None
    artifact_ref: str | None = None
    file_name: str | None = None
    content_type: str | None = None
    items: list[ResultItem] | None = None
    secondary_items: list[ResultItem] | None = None
    keywords: list[str] = Field(default_factory=list)
    unrecognized_kind: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            target = LEGACY_FIELDS.get(key, key)
            # Canonical names win over legacy spellings of the same field.
            if key != target and target in data:
                continue
            normalized[target] = value

        kind = normalized.get("kind")
        if isinstance(kind, str) and kind not in ("results", "job", "artifact"):
            legacy_kind = LEGACY_TYPES.get(kind)
            if legacy_kind is None:
                # Unknown discriminants are left for the classifier to reject.
                normalized.pop("kind")
                normalized["unrecognized_kind"] = kind
            else:
                normalized["kind"] = legacy_kind

        status = normalized.get("status")
        if isinstance(status, str):
            normalized["status"] = status.strip().lower()
        if normalized.get("job_id") is not None:
            normalized["job_id"] = str(normalized["job_id"])
        if normalized.get("keywords") is None:
            normalized.pop("keywords", None)
        return normalized
