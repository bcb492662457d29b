from __future__ import annotations

import asyncio
from typing import Any

import pytest

from querydesk.config import Settings
from querydesk.models.remote import RemoteResponse


class ScriptedTransport:
    """In-memory transport that replays scripted replies.

    A scripted reply is a ``RemoteResponse``, a dict (validated into one),
    an exception instance (raised) or an async callable (awaited). The last
    poll reply repeats once the script is exhausted.
    """

    def __init__(self, submissions: list[Any] | None = None, polls: list[Any] | None = None):
        self.submissions = list(submissions or [])
        self.polls = list(polls or [])
        self.artifacts: dict[str, bytes] = {}
        self.submitted: list[str] = []
        self.polled: list[str] = []

    @property
    def submit_calls(self) -> int:
        return len(self.submitted)

    @property
    def poll_calls(self) -> int:
        return len(self.polled)

    async def submit_query(self, text: str) -> RemoteResponse:
        self.submitted.append(text)
        return await self._reply(self.submissions.pop(0))

    async def poll_job(self, job_id: str) -> RemoteResponse:
        self.polled.append(job_id)
        reply = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        return await self._reply(reply)

    async def fetch_artifact(self, ref: str) -> bytes:
        return self.artifacts[ref]

    @staticmethod
    async def _reply(reply: Any) -> RemoteResponse:
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = await reply()
        if isinstance(reply, dict):
            return RemoteResponse.model_validate(reply)
        return reply


def gated(reply: Any, gate: asyncio.Event):
    """Scripted reply that is held back until ``gate`` is set."""

    async def wait_then_reply():
        await gate.wait()
        return reply

    return wait_then_reply


def delayed(reply: Any, seconds: float):
    async def sleep_then_reply():
        await asyncio.sleep(seconds)
        return reply

    return sleep_then_reply


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fast_settings():
    return Settings(
        poll_interval_seconds=0.01,
        poll_min_interval_seconds=0.0,
        job_hard_timeout_seconds=0.5,
        request_timeout_seconds=0.2,
    )


SEARCH_REPLY = {
    "kind": "results",
    "items": [
        {"id": "1", "title": "Lecture notes", "url": "https://example.com/1", "relevanceScore": 0.4},
        {"id": "2", "title": "Past exam", "url": "https://example.com/2", "relevanceScore": 0.9},
    ],
    "secondary_items": [
        {"id": "3", "title": "Forum thread", "url": "https://example.com/3", "relevanceScore": 0.9},
    ],
    "keywords": ["calculus"],
}

JOB_REPLY = {"kind": "job", "job_id": "job-1", "status": "processing", "message": "Queued"}


def progress(percent: float, message: str = "Working") -> dict:
    return {"status": "processing", "progress_percent": percent, "message": message}


def completed(ref: str = "/files/exam.pdf") -> dict:
    return {"status": "completed", "artifact_ref": ref, "progress_percent": 100}
