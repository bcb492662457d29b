from __future__ import annotations

import time
from typing import Any, Callable
from urllib.parse import urljoin
from uuid import uuid4

import httpx
from loguru import logger
from pydantic import ValidationError

from querydesk.config import settings
from querydesk.engine.errors import (
    NetworkUnavailableError,
    RemoteClassificationError,
    RemoteHttpError,
    TransportTimeoutError,
)
from querydesk.models.remote import RemoteResponse
from querydesk.services.logger import log_transport_call

INLINE_PREFIX = "inline:"
BINARY_CONTENT_TYPES = ("application/pdf", "application/octet-stream")


def _preview(text: str, limit: int = 50) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class HttpTransport:
    """httpx client for the query service (``POST /chat``, ``GET /progress/{id}``).

    A binary submission response (the service may answer with the finished
    PDF directly) is kept in memory and handed out as an ``inline:`` artifact
    reference that ``fetch_artifact`` resolves later.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        log_interval_seconds: float | None = None,
        artifact_file_name: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.request_timeout_seconds)
        self.log_interval_seconds = float(
            settings.transport_log_interval_seconds if log_interval_seconds is None else log_interval_seconds
        )
        self.artifact_file_name = artifact_file_name or settings.artifact_file_name
        self._http_transport = http_transport
        self._clock = clock
        self._last_log_at: dict[str, float] = {}
        self._inline_artifacts: dict[str, bytes] = {}

    async def submit_query(self, text: str) -> RemoteResponse:
        verbose = self._should_log("chat")
        if verbose:
            logger.info(f"Chat request: {_preview(text)}")

        response = await self._request("chat", "POST", f"{self.base_url}/chat", json={"query": text})
        content_type = response.headers.get("content-type", "")
        if any(binary in content_type for binary in BINARY_CONTENT_TYPES):
            ref = f"{INLINE_PREFIX}{uuid4()}"
            self._inline_artifacts[ref] = response.content
            if verbose:
                logger.info(f"Chat response is a binary artifact ({len(response.content)} bytes)")
            return RemoteResponse(
                kind="artifact",
                artifact_ref=ref,
                file_name=self.artifact_file_name,
                content_type=content_type,
            )

        result = self._parse(response, "chat")
        if verbose:
            logger.info(f"Chat response kind: {result.kind}")
        return result

    async def poll_job(self, job_id: str) -> RemoteResponse:
        verbose = self._should_log("progress")
        response = await self._request("progress", "GET", f"{self.base_url}/progress/{job_id}")
        result = self._parse(response, "progress")
        if verbose:
            logger.info(
                f"Progress for {job_id}: status={result.status or 'none'}, "
                f"progress={result.progress_percent or 0}%"
            )
        return result

    async def fetch_artifact(self, ref: str) -> bytes:
        if ref.startswith(INLINE_PREFIX):
            # Inline artifacts are served once, then released.
            payload = self._inline_artifacts.pop(ref, None)
            if payload is None:
                raise RemoteClassificationError(f"unknown inline artifact {ref}")
            return payload

        url = urljoin(f"{self.base_url}/", ref)
        logger.info(f"Downloading artifact: {_preview(url, 30)}")
        response = await self._request("artifact", "GET", url)
        return response.content

    def _should_log(self, channel: str) -> bool:
        now = self._clock()
        last = self._last_log_at.get(channel)
        if last is not None and now - last <= self.log_interval_seconds:
            return False
        self._last_log_at[channel] = now
        return True

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                transport=self._http_transport,
            ) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            log_transport_call(operation, "timeout", self._elapsed_ms(started), error=str(exc) or "timeout")
            raise TransportTimeoutError(f"{operation} request timed out after {self.timeout_seconds:g}s") from exc
        except httpx.HTTPStatusError as exc:
            detail = self._error_detail(exc.response)
            log_transport_call(
                operation,
                "http_error",
                self._elapsed_ms(started),
                error=detail,
                status_code=exc.response.status_code,
            )
            raise RemoteHttpError(exc.response.status_code, detail) from exc
        except httpx.HTTPError as exc:
            log_transport_call(operation, "network_error", self._elapsed_ms(started), error=str(exc) or type(exc).__name__)
            raise NetworkUnavailableError(str(exc) or type(exc).__name__) from exc

        log_transport_call(operation, "success", self._elapsed_ms(started), status_code=response.status_code)
        return response

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            return payload["message"]
        return f"HTTP error! status: {response.status_code}"

    @staticmethod
    def _parse(response: httpx.Response, operation: str) -> RemoteResponse:
        try:
            return RemoteResponse.model_validate(response.json())
        except ValueError as exc:
            # ValidationError is a ValueError subclass; so is JSONDecodeError.
            reason = "invalid payload" if isinstance(exc, ValidationError) else "body is not JSON"
            raise RemoteClassificationError(f"{operation} response {reason}") from exc

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
