from __future__ import annotations

from dataclasses import replace

from querydesk.models.messages import Author, Message, MessageKind


class Transcript:
    """Append-only ordered log of user and system messages.

    The only in-place change allowed is on a job's live progress message,
    looked up by job id: its text and percent can move forward while the job
    runs, and it is settled once into ``FileReady`` or ``ErrorNotice``.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, message: Message) -> Message:
        if message.is_live_progress and self.find_live_progress(message.job_id) is not None:
            raise ValueError(f"job {message.job_id} already has a live progress message")
        self._messages.append(message)
        return message

    def add_user_text(self, text: str) -> Message:
        return self.append(Message.create(Author.USER, MessageKind.TEXT, text))

    def add_system(self, kind: MessageKind, text: str, **kwargs) -> Message:
        return self.append(Message.create(Author.SYSTEM, kind, text, **kwargs))

    def find_live_progress(self, job_id: str | None) -> Message | None:
        if job_id is None:
            return None
        index = self._live_index(job_id)
        return self._messages[index] if index is not None else None

    def start_progress(
        self,
        job_id: str,
        text: str,
        *,
        progress_percent: float | None = None,
    ) -> Message:
        """Open the live progress message of ``job_id``.

        A job id the server hands out again (e.g. after the first poller was
        superseded) reuses its live message in place instead of adding one.
        """
        index = self._live_index(job_id)
        if index is None:
            return self.add_system(
                MessageKind.PROGRESS_UPDATE,
                text,
                job_id=job_id,
                progress_percent=progress_percent,
            )
        restarted = replace(self._messages[index], text=text, progress_percent=progress_percent)
        self._messages[index] = restarted
        return restarted

    def update_progress(
        self,
        job_id: str,
        *,
        text: str | None = None,
        progress_percent: float | None = None,
    ) -> Message | None:
        """Refresh the live progress message of ``job_id``.

        Percent never moves backwards while the job is active. Returns the
        updated message, or ``None`` when the job has no live message.
        """
        index = self._live_index(job_id)
        if index is None:
            return None
        current = self._messages[index]
        percent = current.progress_percent
        if progress_percent is not None:
            clamped = min(max(float(progress_percent), 0.0), 100.0)
            percent = clamped if percent is None else max(percent, clamped)
        updated = replace(current, text=text or current.text, progress_percent=percent)
        self._messages[index] = updated
        return updated

    def settle_job(
        self,
        job_id: str | None,
        kind: MessageKind,
        text: str,
        *,
        artifact_ref: str | None = None,
        file_name: str | None = None,
        progress_percent: float | None = None,
    ) -> Message:
        """Turn the live progress message of a job into its terminal form.

        When the job has no live message (e.g. the server answered the
        submission with an already finished job) a new system message is
        appended instead, so each job ends up with exactly one terminal entry.
        """
        if kind not in (MessageKind.FILE_READY, MessageKind.ERROR_NOTICE):
            raise ValueError(f"{kind.value} is not a terminal message kind")

        index = self._live_index(job_id) if job_id is not None else None
        if index is None:
            return self.add_system(
                kind,
                text,
                job_id=job_id,
                artifact_ref=artifact_ref,
                file_name=file_name,
                progress_percent=progress_percent,
            )

        current = self._messages[index]
        settled = replace(
            current,
            kind=kind,
            text=text,
            artifact_ref=artifact_ref,
            file_name=file_name,
            progress_percent=(
                progress_percent if progress_percent is not None else current.progress_percent
            ),
        )
        self._messages[index] = settled
        return settled

    def clear(self) -> None:
        self._messages.clear()

    def _live_index(self, job_id: str) -> int | None:
        for index in range(len(self._messages) - 1, -1, -1):
            message = self._messages[index]
            if message.job_id == job_id and message.is_live_progress:
                return index
        return None
