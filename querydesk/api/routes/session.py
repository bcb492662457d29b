from __future__ import annotations

import asyncio
import json as _json

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sse_starlette.sse import EventSourceResponse

from querydesk.api.deps import get_session
from querydesk.engine.errors import QueryDeskError
from querydesk.engine.session import Session, SessionSnapshot
from querydesk.models.schemas import (
    CancelResponse,
    QueryAcceptedResponse,
    QueryRequest,
    SessionSnapshotResponse,
)
from querydesk.services import logger as log_service

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("", response_model=SessionSnapshotResponse)
async def get_snapshot(session: Session = Depends(get_session)):
    return session.snapshot().to_dict()


@router.post("/query", response_model=QueryAcceptedResponse, status_code=202)
async def submit_query(request: QueryRequest, session: Session = Depends(get_session)):
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Query text must not be empty")
    task = session.submit(request.text)
    return QueryAcceptedResponse(accepted=task is not None, session_state=session.state.value)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_job(session: Session = Depends(get_session)):
    cancelled = session.cancel_active_job()
    return CancelResponse(cancelled=cancelled, session_state=session.state.value)


@router.post("/reset", response_model=SessionSnapshotResponse)
async def reset_session(session: Session = Depends(get_session)):
    session.reset()
    return session.snapshot().to_dict()


@router.get("/artifact")
async def download_artifact(ref: str = Query(...), session: Session = Depends(get_session)):
    try:
        payload = await session.download_artifact(ref)
    except QueryDeskError as e:
        log_service.log_event(
            event_type="artifact_error",
            message="Failed to download artifact",
            error=str(e),
            error_kind=e.kind.value,
        )
        raise HTTPException(status_code=502, detail=e.user_message)
    file_name = session.config.artifact_file_name
    return Response(
        content=payload,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/stream")
async def stream_session(request: Request, session: Session = Depends(get_session)):
    queue: asyncio.Queue[SessionSnapshot] = asyncio.Queue()
    unsubscribe = session.subscribe(queue.put_nowait)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                snapshot = await queue.get()
                yield {
                    "event": "snapshot",
                    "data": _json.dumps(snapshot.to_dict()),
                }
        finally:
            unsubscribe()

    return EventSourceResponse(event_generator())
