from __future__ import annotations

from enum import Enum

from querydesk.models.events import EventType, SessionEvent


class SessionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    JOB_RUNNING = "job_running"
    READY = "ready"
    FAILED = "failed"


TRANSITIONS: dict[EventType, SessionState] = {
    EventType.SUBMISSION_ACCEPTED: SessionState.SEARCHING,
    EventType.SEARCH_COMPLETED: SessionState.READY,
    EventType.ARTIFACT_READY: SessionState.READY,
    EventType.JOB_STARTED: SessionState.JOB_RUNNING,
    EventType.JOB_COMPLETED: SessionState.READY,
    EventType.SUBMISSION_FAILED: SessionState.FAILED,
    EventType.JOB_FAILED: SessionState.FAILED,
    EventType.JOB_TIMED_OUT: SessionState.FAILED,
    EventType.SESSION_RESET: SessionState.IDLE,
}


class SessionStateMachine:
    """Externally observable state, derived only from gateway and poller events.

    ``Ready`` and ``Failed`` stay until the next submission; ``Idle`` is
    reached again only through an explicit reset.
    """

    def __init__(self) -> None:
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    def apply(self, event: SessionEvent) -> bool:
        """Apply one event; return True when the state changed."""
        target = self._target(event)
        if target is None or target == self._state:
            return False
        self._state = target
        return True

    def _target(self, event: SessionEvent) -> SessionState | None:
        if event.event == EventType.JOB_CANCELLED:
            # A superseded job hands over to the new submission's own events.
            if event.data.get("superseded"):
                return None
            return SessionState.FAILED if self._state == SessionState.JOB_RUNNING else None
        return TRANSITIONS.get(event.event)
