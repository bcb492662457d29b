from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from querydesk.models.remote import ResultItem


# --- Requests ---


class QueryRequest(BaseModel):
    text: str


# --- Responses ---


class QueryAcceptedResponse(BaseModel):
    accepted: bool
    session_state: str


class MessageResponse(BaseModel):
    id: str
    author: str
    kind: str
    created_at: datetime
    text: str
    job_id: str | None = None
    progress_percent: float | None = None
    artifact_ref: str | None = None
    file_name: str | None = None
    results: list[ResultItem] = []


class SearchStateResponse(BaseModel):
    results: list[ResultItem]
    primary_count: int
    secondary_count: int
    keywords: list[str]


class SessionSnapshotResponse(BaseModel):
    session_state: str
    transcript: list[MessageResponse]
    active_job: dict[str, Any] | None = None
    search: SearchStateResponse


class CancelResponse(BaseModel):
    cancelled: bool
    session_state: str
