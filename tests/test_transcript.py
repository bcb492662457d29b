from __future__ import annotations

import pytest

from querydesk.engine.transcript import Transcript
from querydesk.models.messages import Author, MessageKind


def _transcript_with_job(job_id: str = "job-1", percent: float = 10.0) -> Transcript:
    transcript = Transcript()
    transcript.add_user_text("make me an exam")
    transcript.add_system(MessageKind.PROGRESS_UPDATE, "Generating", job_id=job_id, progress_percent=percent)
    return transcript


def test_snapshot_is_not_affected_by_later_appends():
    transcript = Transcript()
    transcript.add_user_text("first")
    before = transcript.snapshot()

    transcript.add_user_text("second")

    assert len(before) == 1
    assert len(transcript) == 2
    assert before[0].author == Author.USER
    assert before[0].kind == MessageKind.TEXT


def test_progress_is_clamped_and_never_moves_backwards():
    transcript = _transcript_with_job(percent=10.0)

    assert transcript.update_progress("job-1", progress_percent=55).progress_percent == 55
    assert transcript.update_progress("job-1", progress_percent=30).progress_percent == 55
    assert transcript.update_progress("job-1", progress_percent=250).progress_percent == 100


def test_progress_update_keeps_text_when_none_given():
    transcript = _transcript_with_job()

    updated = transcript.update_progress("job-1", text=None, progress_percent=20)

    assert updated.text == "Generating"
    assert transcript.update_progress("job-1", text="Writing questions").text == "Writing questions"


def test_progress_update_replaces_entry_in_place():
    transcript = _transcript_with_job()
    old = transcript.snapshot()

    transcript.update_progress("job-1", progress_percent=80)

    assert len(transcript) == 2
    assert old[1].progress_percent == 10.0
    assert transcript.snapshot()[1].progress_percent == 80
    assert transcript.snapshot()[1].id == old[1].id


def test_progress_update_for_unknown_job_returns_none():
    transcript = _transcript_with_job()
    assert transcript.update_progress("other", progress_percent=50) is None


def test_second_live_progress_message_for_same_job_is_rejected():
    transcript = _transcript_with_job()

    with pytest.raises(ValueError):
        transcript.add_system(MessageKind.PROGRESS_UPDATE, "again", job_id="job-1")


def test_settle_job_turns_live_message_into_file_ready():
    transcript = _transcript_with_job(percent=60)

    settled = transcript.settle_job(
        "job-1",
        MessageKind.FILE_READY,
        "Your exam is ready.",
        artifact_ref="/files/exam.pdf",
        file_name="exam.pdf",
        progress_percent=100.0,
    )

    assert len(transcript) == 2
    assert settled.kind == MessageKind.FILE_READY
    assert settled.artifact_ref == "/files/exam.pdf"
    assert settled.progress_percent == 100.0
    assert transcript.find_live_progress("job-1") is None
    # A settled job no longer accepts progress.
    assert transcript.update_progress("job-1", progress_percent=10) is None


def test_settle_job_keeps_percent_when_not_given():
    transcript = _transcript_with_job(percent=42)

    settled = transcript.settle_job("job-1", MessageKind.ERROR_NOTICE, "failed")

    assert settled.progress_percent == 42
    assert settled.kind == MessageKind.ERROR_NOTICE


def test_settle_job_without_live_message_appends():
    transcript = Transcript()
    transcript.add_user_text("exam please")

    transcript.settle_job("job-9", MessageKind.FILE_READY, "ready", artifact_ref="/f.pdf")

    messages = transcript.snapshot()
    assert len(messages) == 2
    assert messages[1].author == Author.SYSTEM
    assert messages[1].job_id == "job-9"


def test_settle_job_rejects_non_terminal_kind():
    transcript = _transcript_with_job()

    with pytest.raises(ValueError):
        transcript.settle_job("job-1", MessageKind.TEXT, "nope")


def test_clear_empties_transcript():
    transcript = _transcript_with_job()
    transcript.clear()
    assert len(transcript) == 0
    assert transcript.snapshot() == ()


def test_start_progress_reuses_live_message_of_same_job():
    transcript = _transcript_with_job(percent=35)
    transcript.add_user_text("again please")

    restarted = transcript.start_progress("job-1", "Generating again", progress_percent=0)

    messages = transcript.snapshot()
    assert len(messages) == 3
    assert restarted.id == messages[1].id
    assert messages[1].text == "Generating again"
    assert messages[1].progress_percent == 0


def test_start_progress_appends_for_new_job():
    transcript = Transcript()

    message = transcript.start_progress("job-2", "Generating", progress_percent=5)

    assert transcript.find_live_progress("job-2") == message
    assert len(transcript) == 1
