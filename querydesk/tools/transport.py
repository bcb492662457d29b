from __future__ import annotations

from typing import Protocol

from querydesk.models.remote import RemoteResponse


class Transport(Protocol):
    """Request/response access to the remote query service.

    Implementations raise ``querydesk.engine.errors.QueryDeskError``
    subclasses, keeping timeouts distinguishable from connectivity errors.
    """

    async def submit_query(self, text: str) -> RemoteResponse: ...
    async def poll_job(self, job_id: str) -> RemoteResponse: ...
    async def fetch_artifact(self, ref: str) -> bytes: ...
