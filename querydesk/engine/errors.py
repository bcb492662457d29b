"""Error kinds that end a submission or a job.

None of these are retried automatically; each one results in exactly one
error notice in the transcript and the session landing in ``Failed``.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    REMOTE_CLASSIFICATION_ERROR = "remote_classification_error"
    REMOTE_REPORTED_FAILURE = "remote_reported_failure"
    HARD_TIMEOUT_EXCEEDED = "hard_timeout_exceeded"


class QueryDeskError(Exception):
    kind: ErrorKind = ErrorKind.NETWORK_UNAVAILABLE

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.kind.value)
        self.detail = detail

    @property
    def user_message(self) -> str:
        return f"Something went wrong: {self.detail or 'unknown error'}"


class NetworkUnavailableError(QueryDeskError):
    kind = ErrorKind.NETWORK_UNAVAILABLE

    @property
    def user_message(self) -> str:
        return "Could not reach the server. Check your connection and try again."


class RemoteHttpError(NetworkUnavailableError):
    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(detail or f"HTTP error! status: {status_code}")
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return f"The server rejected the request ({self.status_code}): {self.detail}"


class TransportTimeoutError(QueryDeskError):
    kind = ErrorKind.TIMEOUT

    @property
    def user_message(self) -> str:
        return "The server is taking too long to respond. Please try again later."


class RemoteClassificationError(QueryDeskError):
    kind = ErrorKind.REMOTE_CLASSIFICATION_ERROR

    @property
    def user_message(self) -> str:
        return f"Received an unexpected response from the server: {self.detail}"


class RemoteReportedFailure(QueryDeskError):
    kind = ErrorKind.REMOTE_REPORTED_FAILURE

    @property
    def user_message(self) -> str:
        return f"Exam generation failed: {self.detail or 'unknown error'}"


class HardTimeoutExceeded(QueryDeskError):
    kind = ErrorKind.HARD_TIMEOUT_EXCEEDED

    def __init__(self, budget_seconds: float):
        super().__init__(f"job did not finish within {budget_seconds:g} seconds")
        self.budget_seconds = budget_seconds

    @property
    def user_message(self) -> str:
        return f"Exam generation timed out after {self.budget_seconds:g} seconds."
