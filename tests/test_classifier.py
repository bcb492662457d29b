from __future__ import annotations

from querydesk.engine.classifier import (
    ClassificationFailure,
    DirectArtifact,
    JobDone,
    JobFailed,
    JobProgress,
    JobStarted,
    SearchResult,
    classify_poll,
    classify_submission,
)
from querydesk.models.job import JobStatus
from querydesk.models.remote import RemoteResponse


def _submission(payload: dict):
    return classify_submission(RemoteResponse.model_validate(payload))


def _poll(payload: dict, job_id: str = "job-1"):
    return classify_poll(RemoteResponse.model_validate(payload), job_id)


class TestSubmission:
    def test_search_results_are_merged_by_descending_score(self):
        outcome = _submission(
            {
                "kind": "results",
                "items": [
                    {"title": "low", "relevanceScore": 0.2},
                    {"title": "high-primary", "relevanceScore": 0.9},
                ],
                "secondary_items": [{"title": "high-secondary", "relevanceScore": 0.9}],
                "keywords": ["algebra"],
            }
        )

        assert isinstance(outcome, SearchResult)
        # Equal scores keep source order: primary before secondary.
        assert [item.title for item in outcome.items] == ["high-primary", "high-secondary", "low"]
        assert len(outcome.primary) == 2
        assert len(outcome.secondary) == 1
        assert outcome.keywords == ("algebra",)

    def test_missing_score_sorts_as_zero(self):
        outcome = _submission(
            {"kind": "results", "items": [{"title": "unscored"}, {"title": "scored", "relevanceScore": 0.1}]}
        )
        assert [item.title for item in outcome.items] == ["scored", "unscored"]

    def test_legacy_search_shape(self):
        outcome = _submission(
            {
                "type": "search",
                "orbiResults": [{"title": "a", "relevanceScore": 0.5, "commentCount": 3}],
                "sumanwhiResults": [{"title": "b", "relevanceScore": 0.7}],
                "keywords": None,
            }
        )

        assert isinstance(outcome, SearchResult)
        assert [item.title for item in outcome.items] == ["b", "a"]
        assert outcome.items[1].comment_count == 3
        assert outcome.keywords == ()

    def test_empty_results_are_still_results(self):
        outcome = _submission({"kind": "results", "items": []})
        assert isinstance(outcome, SearchResult)
        assert outcome.items == ()

    def test_legacy_exam_in_progress_starts_job(self):
        outcome = _submission({"type": "exam", "requestId": 42, "status": "Processing", "progress": 5})

        assert outcome == JobStarted(job_id="42", message=None, progress_percent=5)

    def test_legacy_exam_with_download_url_and_no_request_id_is_direct_artifact(self):
        outcome = _submission({"type": "exam", "downloadUrl": "/downloads/exam.pdf"})
        assert outcome == DirectArtifact(artifact_ref="/downloads/exam.pdf")

    def test_exam_download_type_is_artifact(self):
        outcome = _submission({"type": "exam_download", "examDownloadUrl": "/x.pdf", "fileName": "x.pdf"})
        assert outcome == DirectArtifact(artifact_ref="/x.pdf", file_name="x.pdf")

    def test_artifact_without_reference_fails(self):
        outcome = _submission({"kind": "artifact"})
        assert isinstance(outcome, ClassificationFailure)

    def test_job_already_completed(self):
        outcome = _submission({"kind": "job", "job_id": "j", "status": "completed", "artifact_ref": "/e.pdf"})
        assert outcome == JobDone(job_id="j", artifact_ref="/e.pdf")

    def test_completed_without_artifact_is_a_failure(self):
        outcome = _submission({"kind": "job", "job_id": "j", "status": "completed"})

        assert isinstance(outcome, ClassificationFailure)
        assert "without an artifact" in outcome.reason

    def test_failed_status_at_submission(self):
        outcome = _submission({"kind": "job", "job_id": "j", "status": "failed", "error": "quota exceeded"})
        assert outcome == JobFailed(job_id="j", reason="quota exceeded")

    def test_unknown_type_is_rejected(self):
        outcome = _submission({"type": "weather", "job_id": "j"})

        assert isinstance(outcome, ClassificationFailure)
        assert "weather" in outcome.reason

    def test_unknown_status_is_rejected(self):
        outcome = _submission({"kind": "job", "job_id": "j", "status": "paused"})

        assert isinstance(outcome, ClassificationFailure)
        assert "paused" in outcome.reason

    def test_empty_body_is_rejected(self):
        outcome = _submission({})

        assert isinstance(outcome, ClassificationFailure)
        assert "empty body" in outcome.reason

    def test_canonical_field_wins_over_legacy_spelling(self):
        outcome = _submission({"kind": "job", "job_id": "canonical", "requestId": "legacy", "status": "pending"})
        assert outcome.job_id == "canonical"


class TestPoll:
    def test_processing_becomes_progress(self):
        outcome = _poll(
            {
                "status": "processing",
                "progress": 40,
                "message": "Writing questions",
                "estimatedSecondsLeft": 12,
                "elapsedTimeSeconds": 8,
            }
        )

        assert outcome == JobProgress(
            job_id="job-1",
            status=JobStatus.PROCESSING,
            message="Writing questions",
            progress_percent=40,
            estimated_seconds_left=12,
            elapsed_seconds=8,
        )

    def test_status_is_normalised(self):
        outcome = _poll({"status": " Completed ", "downloadUrl": "/e.pdf"})
        assert outcome == JobDone(job_id="job-1", artifact_ref="/e.pdf")

    def test_completed_without_artifact_is_a_failure(self):
        assert isinstance(_poll({"status": "completed"}), ClassificationFailure)

    def test_failed_reports_reason(self):
        outcome = _poll({"status": "failed", "message": "model crashed"})
        assert outcome == JobFailed(job_id="job-1", reason="model crashed")

    def test_missing_status_is_rejected(self):
        outcome = _poll({"progress": 10})

        assert isinstance(outcome, ClassificationFailure)
        assert "missing" in outcome.reason
