from __future__ import annotations

import asyncio
import time
from typing import Callable

from loguru import logger

from querydesk.engine.classifier import (
    ClassificationFailure,
    DirectArtifact,
    JobDone,
    JobFailed,
    JobStarted,
    SearchResult,
    SubmissionOutcome,
    classify_submission,
)
from querydesk.engine.errors import (
    NetworkUnavailableError,
    QueryDeskError,
    RemoteClassificationError,
    RemoteReportedFailure,
    TransportTimeoutError,
)
from querydesk.engine.poller import COMPLETED_TEXT, PollerRegistry, PollerState, ProgressPoller
from querydesk.engine.transcript import Transcript
from querydesk.models.events import SessionEvent
from querydesk.models.job import Job
from querydesk.models.messages import MessageKind
from querydesk.services import streaming
from querydesk.services.logger import log_event, log_job_step
from querydesk.services.search_results import SearchState
from querydesk.tools.transport import Transport

RESULTS_FOUND_TEXT = "Found {count} search results."
NO_RESULTS_TEXT = "No search results found."
JOB_STARTING_TEXT = "Generating your exam..."
ARTIFACT_READY_TEXT = "Your PDF file is ready."
CANCELLED_TEXT = "Exam generation was cancelled."

Emit = Callable[[SessionEvent], None]


class RequestGateway:
    """Sequences one query submission: dedup, transport call, classification.

    Only one submission is in flight at a time. A submission whose text equals
    the latest user text that has not reached a terminal outcome is dropped.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        transcript: Transcript,
        emit: Emit,
        request_timeout_seconds: float,
        poll_interval_seconds: float,
        poll_min_interval_seconds: float,
        job_hard_timeout_seconds: float,
        artifact_file_name: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self._transcript = transcript
        self._emit = emit
        self.request_timeout_seconds = request_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.poll_min_interval_seconds = poll_min_interval_seconds
        self.job_hard_timeout_seconds = job_hard_timeout_seconds
        self.artifact_file_name = artifact_file_name
        self._clock = clock

        self.pollers = PollerRegistry(self._build_poller)
        self.search = SearchState()
        self.active_job: Job | None = None
        self.transport_calls = 0
        self._in_flight = False
        self._pending_text: str | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending_text(self) -> str | None:
        return self._pending_text

    def submit(self, text: str) -> asyncio.Task | None:
        """Accept or reject one query.

        On accept the user message is already in the transcript when this
        returns; the transport call runs in the returned task.
        """
        if self._in_flight:
            log_event("submission_rejected", "a submission is already in flight", text=text[:50])
            return None
        if self._pending_text is not None and text == self._pending_text:
            log_event("submission_rejected", "duplicate of the pending query", text=text[:50])
            return None

        self._supersede_active_job()
        self.search = SearchState()
        message = self._transcript.add_user_text(text)
        self._in_flight = True
        self._pending_text = text
        generation = self._generation
        self._emit(streaming.submission_accepted(text, message.id))
        task = asyncio.ensure_future(self._run(text, generation))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def cancel_active_job(self) -> bool:
        job = self.active_job
        poller = self.pollers.get(job.job_id) if job is not None else None
        if poller is None or not poller.is_active:
            return False
        self._transcript.settle_job(job.job_id, MessageKind.ERROR_NOTICE, CANCELLED_TEXT)
        self._clear_pending()
        return self.pollers.cancel(job.job_id)

    def reset(self) -> None:
        """Invalidate any in-flight submission and stop all pollers."""
        self._generation += 1
        self.pollers.cancel_all(superseded=True, abort_in_flight=True)
        self.active_job = None
        self.search = SearchState()
        self._in_flight = False
        self._pending_text = None

    async def _run(self, text: str, generation: int) -> None:
        self.transport_calls += 1
        try:
            response = await asyncio.wait_for(
                self._transport.submit_query(text),
                timeout=self.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = TransportTimeoutError(f"chat request timed out after {self.request_timeout_seconds:g}s")
            if self._is_current(generation):
                self._fail(error)
            return
        except QueryDeskError as exc:
            if self._is_current(generation):
                self._fail(exc)
            return
        except Exception as exc:
            logger.exception("Unexpected transport error while submitting query")
            if self._is_current(generation):
                self._fail(NetworkUnavailableError(str(exc) or type(exc).__name__))
            return

        if not self._is_current(generation):
            logger.debug(f"Discarding stale submission response for: {text[:50]}")
            return

        self._in_flight = False
        try:
            self._dispatch(classify_submission(response))
        except Exception as exc:
            logger.exception("Unexpected error while handling a submission response")
            self.pollers.cancel_all(superseded=True)
            self.active_job = None
            self._fail(RemoteClassificationError(str(exc) or type(exc).__name__))

    def _dispatch(self, outcome: SubmissionOutcome) -> None:
        if isinstance(outcome, SearchResult):
            self._handle_search(outcome)
        elif isinstance(outcome, JobStarted):
            self._handle_job_started(outcome)
        elif isinstance(outcome, JobDone):
            self._handle_job_done(outcome)
        elif isinstance(outcome, DirectArtifact):
            self._handle_artifact(outcome)
        elif isinstance(outcome, JobFailed):
            self._fail(RemoteReportedFailure(outcome.reason or ""), job_id=outcome.job_id)
        elif isinstance(outcome, ClassificationFailure):
            self._fail(RemoteClassificationError(outcome.reason))

    def _handle_search(self, outcome: SearchResult) -> None:
        self.search = SearchState(
            primary=outcome.primary,
            secondary=outcome.secondary,
            keywords=outcome.keywords,
        )
        if outcome.items:
            text = RESULTS_FOUND_TEXT.format(count=len(outcome.items))
        else:
            text = NO_RESULTS_TEXT
        self._transcript.add_system(MessageKind.TEXT, text, results=outcome.items)
        self._clear_pending()
        self._emit(streaming.search_completed(len(outcome.items), list(outcome.keywords)))

    def _handle_job_started(self, outcome: JobStarted) -> None:
        job = Job(job_id=outcome.job_id, started_at=self._clock(), message=outcome.message)
        self.active_job = job
        self._transcript.start_progress(
            job.job_id,
            outcome.message or JOB_STARTING_TEXT,
            progress_percent=outcome.progress_percent or 0.0,
        )
        log_job_step(job.job_id, "started", {"message": outcome.message})
        self._emit(streaming.job_started(job.job_id, outcome.message))
        self.pollers.start(job)

    def _handle_job_done(self, outcome: JobDone) -> None:
        self._transcript.settle_job(
            outcome.job_id,
            MessageKind.FILE_READY,
            COMPLETED_TEXT,
            artifact_ref=outcome.artifact_ref,
            file_name=outcome.file_name or self.artifact_file_name,
            progress_percent=100.0,
        )
        self._clear_pending()
        self._emit(streaming.job_completed(outcome.job_id, outcome.artifact_ref))

    def _handle_artifact(self, outcome: DirectArtifact) -> None:
        file_name = outcome.file_name or self.artifact_file_name
        self._transcript.add_system(
            MessageKind.FILE_READY,
            ARTIFACT_READY_TEXT,
            artifact_ref=outcome.artifact_ref,
            file_name=file_name,
        )
        self._clear_pending()
        self._emit(streaming.artifact_ready(outcome.artifact_ref, file_name))

    def _fail(self, error: QueryDeskError, *, job_id: str | None = None) -> None:
        self._in_flight = False
        self._transcript.add_system(MessageKind.ERROR_NOTICE, error.user_message, job_id=job_id)
        self._clear_pending()
        logger.warning(f"Submission failed ({error.kind.value}): {error.detail}")
        self._emit(streaming.submission_failed(error.kind.value, error.user_message))

    def _build_poller(self, job: Job) -> ProgressPoller:
        return ProgressPoller(
            job,
            transport=self._transport,
            transcript=self._transcript,
            emit=self._emit,
            interval_seconds=self.poll_interval_seconds,
            min_interval_seconds=self.poll_min_interval_seconds,
            hard_timeout_seconds=self.job_hard_timeout_seconds,
            request_timeout_seconds=self.request_timeout_seconds,
            clock=self._clock,
            on_finished=self._on_poller_finished,
        )

    def _on_poller_finished(self, poller: ProgressPoller) -> None:
        self.pollers.discard(poller)
        if self.active_job is not None and self.active_job.job_id == poller.job_id:
            if poller.state != PollerState.CANCELLED:
                self._clear_pending()
            self.active_job = None

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Submission task failed")

    def _supersede_active_job(self) -> None:
        if self.pollers.cancel_all(superseded=True):
            logger.info("New submission superseded the running job")
        self.active_job = None

    def _clear_pending(self) -> None:
        self._pending_text = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation
