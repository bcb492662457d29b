from __future__ import annotations

from fastapi import HTTPException, Request

from querydesk.engine.session import Session


def get_session(request: Request) -> Session:
    """Return the application's session, created in the app lifespan."""
    session: Session | None = getattr(request.app.state, "session", None)
    if session is None or session.disposed:
        raise HTTPException(status_code=503, detail="Session is not available")
    return session
