from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Callable

from loguru import logger

from querydesk.config import Settings, settings as default_settings
from querydesk.engine.errors import TransportTimeoutError
from querydesk.engine.gateway import RequestGateway
from querydesk.engine.state import SessionState, SessionStateMachine
from querydesk.engine.transcript import Transcript
from querydesk.models.events import SessionEvent
from querydesk.models.job import Job
from querydesk.models.messages import Message
from querydesk.services import streaming
from querydesk.services.logger import log_event
from querydesk.services.search_results import SearchState
from querydesk.tools.transport import Transport


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    session_state: SessionState
    transcript: tuple[Message, ...]
    active_job: Job | None = None
    search: SearchState = SearchState()

    def to_dict(self) -> dict:
        return {
            "session_state": self.session_state.value,
            "transcript": [message.to_dict() for message in self.transcript],
            "active_job": self.active_job.to_dict() if self.active_job else None,
            "search": self.search.to_dict(),
        }


Subscriber = Callable[[SessionSnapshot], None]


class Session:
    """Owns the transcript, the active job and the observable session state.

    All methods must be called from the event loop that runs the session.
    Subscribers receive a fresh immutable snapshot on every change and once
    right after subscribing.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        config: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or default_settings
        self._transport = transport
        self._transcript = Transcript()
        self._state = SessionStateMachine()
        self._subscribers: list[Subscriber] = []
        self._disposed = False
        self.gateway = RequestGateway(
            transport=transport,
            transcript=self._transcript,
            emit=self._emit,
            request_timeout_seconds=self.config.request_timeout_seconds,
            poll_interval_seconds=self.config.poll_interval_seconds,
            poll_min_interval_seconds=self.config.poll_min_interval_seconds,
            job_hard_timeout_seconds=self.config.job_hard_timeout_seconds,
            artifact_file_name=self.config.artifact_file_name,
            clock=clock,
        )

    @property
    def state(self) -> SessionState:
        return self._state.state

    @property
    def disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> SessionSnapshot:
        job = self.gateway.active_job
        return SessionSnapshot(
            session_state=self._state.state,
            transcript=self._transcript.snapshot(),
            active_job=replace(job) if job is not None else None,
            search=self.gateway.search,
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)
        self._deliver(callback, self.snapshot())

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def submit(self, text: str) -> asyncio.Task | None:
        self._ensure_open()
        return self.gateway.submit(text)

    def cancel_active_job(self) -> bool:
        self._ensure_open()
        return self.gateway.cancel_active_job()

    def reset(self) -> None:
        """Clear the transcript and return to ``Idle``."""
        self._ensure_open()
        self.gateway.reset()
        self._transcript.clear()
        self._emit(streaming.session_reset())

    async def download_artifact(self, ref: str) -> bytes:
        try:
            return await asyncio.wait_for(
                self._transport.fetch_artifact(ref),
                timeout=self.config.request_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(
                f"artifact download timed out after {self.config.request_timeout_seconds:g}s"
            ) from exc

    def is_settled(self) -> bool:
        return (
            not self.gateway.in_flight
            and self.gateway.active_job is None
            and self.state != SessionState.JOB_RUNNING
        )

    async def wait_until_settled(self) -> SessionState:
        """Wait until no submission or job is outstanding."""
        settled = asyncio.Event()

        def check(_snapshot: SessionSnapshot) -> None:
            if self.is_settled():
                settled.set()

        unsubscribe = self.subscribe(check)
        try:
            await settled.wait()
        finally:
            unsubscribe()
        return self.state

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self.gateway.reset()
        self._subscribers.clear()
        log_event("session_disposed", "session torn down")

    def _emit(self, event: SessionEvent) -> None:
        changed = self._state.apply(event)
        log_event(event.event.value, "session event", state=self._state.state.value, data=event.data)
        if changed:
            logger.debug(f"Session state -> {self._state.state.value}")
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            self._deliver(callback, snapshot)

    @staticmethod
    def _deliver(callback: Subscriber, snapshot: SessionSnapshot) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Session subscriber raised")

    def _ensure_open(self) -> None:
        if self._disposed:
            raise RuntimeError("session has been disposed")
