"""Progress polling for one long-running job.

Lifecycle::

    IDLE --start()--> ACTIVE --+--> COMPLETED   (status=completed with artifact)
                               +--> FAILED      (status=failed, transport or shape error)
                               +--> TIMED_OUT   (hard budget since start() expired)
                               +--> CANCELLED   (cancel(); transcript left untouched)

Timers are ``loop.call_later`` handles. Every poll captures the poller's
liveness token when it is issued; a response whose token has been revoked
(the poller finished or was cancelled meanwhile) is dropped without touching
the transcript or the job.
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable

from loguru import logger

from querydesk.engine.classifier import (
    ClassificationFailure,
    JobDone,
    JobFailed,
    JobProgress,
    classify_poll,
)
from querydesk.engine.errors import (
    HardTimeoutExceeded,
    NetworkUnavailableError,
    QueryDeskError,
    RemoteClassificationError,
    RemoteReportedFailure,
    TransportTimeoutError,
)
from querydesk.engine.transcript import Transcript
from querydesk.models.events import SessionEvent
from querydesk.models.job import Job, JobStatus
from querydesk.models.messages import MessageKind
from querydesk.services import streaming
from querydesk.services.logger import log_job_step
from querydesk.tools.transport import Transport

COMPLETED_TEXT = "Your exam is ready."

Emit = Callable[[SessionEvent], None]


class PollerState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (PollerState.IDLE, PollerState.ACTIVE)


class LivenessToken:
    __slots__ = ("alive",)

    def __init__(self) -> None:
        self.alive = True

    def revoke(self) -> None:
        self.alive = False


class ProgressPoller:
    def __init__(
        self,
        job: Job,
        *,
        transport: Transport,
        transcript: Transcript,
        emit: Emit,
        interval_seconds: float,
        min_interval_seconds: float,
        hard_timeout_seconds: float,
        request_timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        on_finished: Callable[[ProgressPoller], None] | None = None,
    ):
        self.job = job
        self._transport = transport
        self._transcript = transcript
        self._emit = emit
        self.interval_seconds = interval_seconds
        self.min_interval_seconds = min_interval_seconds
        self.hard_timeout_seconds = hard_timeout_seconds
        self.request_timeout_seconds = request_timeout_seconds
        self._clock = clock
        self._on_finished = on_finished

        self.state = PollerState.IDLE
        self.poll_attempts = 0
        self.skipped_attempts = 0
        self._token = LivenessToken()
        self._last_attempt_at: float | None = None
        self._interval_handle: asyncio.TimerHandle | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def is_active(self) -> bool:
        return self.state == PollerState.ACTIVE

    def start(self) -> None:
        """Begin polling: one poll right away, then one per interval."""
        if self.state != PollerState.IDLE:
            raise RuntimeError(f"poller for job {self.job_id} already {self.state.value}")

        loop = asyncio.get_running_loop()
        self.state = PollerState.ACTIVE
        token = self._token
        self._timeout_handle = loop.call_later(self.hard_timeout_seconds, self._on_hard_timeout, token)
        log_job_step(self.job_id, "polling_started", {"interval_seconds": self.interval_seconds})
        self.tick()
        self._schedule_next(loop, token)

    def tick(self) -> asyncio.Task | None:
        """Issue one poll unless the previous attempt was too recent."""
        if not self.is_active:
            return None
        now = self._clock()
        if self._last_attempt_at is not None and now - self._last_attempt_at < self.min_interval_seconds:
            self.skipped_attempts += 1
            logger.debug(f"Skipping poll for job {self.job_id}: previous attempt {now - self._last_attempt_at:.2f}s ago")
            return None

        self._last_attempt_at = now
        self.poll_attempts += 1
        task = asyncio.ensure_future(self._poll_once(self._token))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    def cancel(self, *, superseded: bool = False, abort_in_flight: bool = False) -> bool:
        """Stop polling without touching the transcript.

        Timers are cancelled before this returns. Polls already in flight
        keep running unless ``abort_in_flight`` is set, but their responses
        are discarded. Returns ``False`` when the poller was not active.
        """
        if abort_in_flight:
            for task in list(self._in_flight):
                task.cancel()
        if not self.is_active:
            return False
        self._stop(PollerState.CANCELLED)
        log_job_step(self.job_id, "cancelled", {"superseded": superseded})
        self._notify_finished()
        self._emit(streaming.job_cancelled(self.job_id, superseded=superseded))
        return True

    def _schedule_next(self, loop: asyncio.AbstractEventLoop, token: LivenessToken) -> None:
        self._interval_handle = loop.call_later(self.interval_seconds, self._on_interval, token)

    def _on_interval(self, token: LivenessToken) -> None:
        if not token.alive or not self.is_active:
            return
        self.tick()
        self._schedule_next(asyncio.get_running_loop(), token)

    def _on_hard_timeout(self, token: LivenessToken) -> None:
        if not token.alive or not self.is_active:
            return
        error = HardTimeoutExceeded(self.hard_timeout_seconds)
        self._stop(PollerState.TIMED_OUT)
        self._transcript.settle_job(self.job_id, MessageKind.ERROR_NOTICE, error.user_message)
        log_job_step(self.job_id, "timed_out", {"budget_seconds": self.hard_timeout_seconds})
        self._notify_finished()
        self._emit(streaming.job_timed_out(self.job_id, self.hard_timeout_seconds))

    async def _poll_once(self, token: LivenessToken) -> None:
        try:
            response = await asyncio.wait_for(
                self._transport.poll_job(self.job_id),
                timeout=self.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._handle_error(
                token,
                TransportTimeoutError(f"progress request timed out after {self.request_timeout_seconds:g}s"),
            )
            return
        except QueryDeskError as exc:
            self._handle_error(token, exc)
            return
        except Exception as exc:
            logger.exception(f"Unexpected transport error while polling job {self.job_id}")
            self._handle_error(token, NetworkUnavailableError(str(exc) or type(exc).__name__))
            return

        if not token.alive:
            logger.debug(f"Discarding stale progress response for job {self.job_id}")
            return

        outcome = classify_poll(response, self.job_id)
        if isinstance(outcome, JobProgress):
            self._apply_progress(outcome)
        elif isinstance(outcome, JobDone):
            self._complete(outcome)
        elif isinstance(outcome, JobFailed):
            self._fail(RemoteReportedFailure(outcome.reason or ""))
        elif isinstance(outcome, ClassificationFailure):
            self._fail(RemoteClassificationError(outcome.reason))

    def _apply_progress(self, outcome: JobProgress) -> None:
        self.job.merge_progress(
            now=self._clock(),
            status=outcome.status,
            message=outcome.message,
            progress_percent=outcome.progress_percent,
            estimated_seconds_left=outcome.estimated_seconds_left,
            elapsed_seconds=outcome.elapsed_seconds,
        )
        message = self._transcript.update_progress(
            self.job_id,
            text=outcome.message,
            progress_percent=outcome.progress_percent,
        )
        self._emit(
            streaming.job_progress(
                self.job_id,
                status=self.job.status.value,
                progress_percent=message.progress_percent if message else self.job.progress_percent,
                message=self.job.message,
                estimated_seconds_left=self.job.estimated_seconds_left,
                elapsed_seconds=self.job.elapsed_seconds,
            )
        )

    def _complete(self, outcome: JobDone) -> None:
        self._stop(PollerState.COMPLETED)
        self.job.status = JobStatus.COMPLETED
        self._transcript.settle_job(
            self.job_id,
            MessageKind.FILE_READY,
            COMPLETED_TEXT,
            artifact_ref=outcome.artifact_ref,
            file_name=outcome.file_name,
            progress_percent=100.0,
        )
        log_job_step(self.job_id, "completed", {"artifact_ref": outcome.artifact_ref})
        self._notify_finished()
        self._emit(streaming.job_completed(self.job_id, outcome.artifact_ref))

    def _fail(self, error: QueryDeskError) -> None:
        self._stop(PollerState.FAILED)
        self.job.status = JobStatus.FAILED
        self._transcript.settle_job(self.job_id, MessageKind.ERROR_NOTICE, error.user_message)
        log_job_step(self.job_id, "failed", {"error_kind": error.kind.value, "detail": error.detail})
        self._notify_finished()
        self._emit(streaming.job_failed(self.job_id, error.kind.value, error.user_message))

    def _handle_error(self, token: LivenessToken, error: QueryDeskError) -> None:
        if not token.alive:
            logger.debug(f"Ignoring error from stale poll of job {self.job_id}: {error}")
            return
        self._fail(error)

    def _stop(self, state: PollerState) -> None:
        self._token.revoke()
        if self._interval_handle is not None:
            self._interval_handle.cancel()
            self._interval_handle = None
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        self.state = state

    def _notify_finished(self) -> None:
        if self._on_finished is not None:
            self._on_finished(self)


class PollerRegistry:
    """Keeps at most one active poller per job id."""

    def __init__(self, factory: Callable[[Job], ProgressPoller]):
        self._factory = factory
        self._pollers: dict[str, ProgressPoller] = {}

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._pollers

    def get(self, job_id: str) -> ProgressPoller | None:
        return self._pollers.get(job_id)

    def active(self) -> list[ProgressPoller]:
        return [poller for poller in self._pollers.values() if poller.is_active]

    def start(self, job: Job) -> ProgressPoller:
        previous = self._pollers.pop(job.job_id, None)
        if previous is not None:
            previous.cancel(superseded=True)
        poller = self._factory(job)
        self._pollers[job.job_id] = poller
        poller.start()
        return poller

    def cancel(self, job_id: str, *, superseded: bool = False, abort_in_flight: bool = False) -> bool:
        poller = self._pollers.pop(job_id, None)
        if poller is None:
            return False
        return poller.cancel(superseded=superseded, abort_in_flight=abort_in_flight)

    def cancel_all(self, *, superseded: bool = False, abort_in_flight: bool = False) -> int:
        cancelled = 0
        for job_id in list(self._pollers):
            if self.cancel(job_id, superseded=superseded, abort_in_flight=abort_in_flight):
                cancelled += 1
        return cancelled

    def discard(self, poller: ProgressPoller) -> None:
        if self._pollers.get(poller.job_id) is poller:
            del self._pollers[poller.job_id]
