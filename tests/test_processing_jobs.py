from __future__ import annotations

import pytest
from postgrest.exceptions import APIError

from app.models.processing import JobStatus
from app.services import processing_jobs
from app.utils.exceptions import ProcessingError


def _seed_job(supabase, **overrides):
    row = {"id": "job-1", "app_submission_id": "sub-1", "status": "pending", "progress": 0}
    row.update(overrides)
    return supabase.seed("app_processing_jobs", row)


def test_get_job_for_missing_job_raises(supabase):
    with pytest.raises(ProcessingError, match="Failed to get processing job"):
        processing_jobs.get_job_for("sub-1")


def test_ensure_job_for_creates_pending_job(supabase):
    job = processing_jobs.ensure_job_for("sub-1")

    assert job.status == JobStatus.PENDING
    assert job.progress == 0
    assert processing_jobs.get_job_for("sub-1").id == job.id


def test_ensure_job_for_reuses_existing_job(supabase):
    _seed_job(supabase)

    job = processing_jobs.ensure_job_for("sub-1")

    assert job.id == "job-1"
    assert len(supabase.rows("app_processing_jobs")) == 1


def test_ensure_job_for_rereads_after_concurrent_insert(supabase, monkeypatch: pytest.MonkeyPatch):
    reads = iter([None, {"id": "job-trigger", "app_submission_id": "sub-1", "status": "pending", "progress": 0}])
    monkeypatch.setattr(processing_jobs, "_fetch_job_row", lambda _submission_id: next(reads))
    supabase.fail(
        "app_processing_jobs",
        "insert",
        APIError({"message": "duplicate key", "code": "23505", "hint": None, "details": None}),
    )

    job = processing_jobs.ensure_job_for("sub-1")

    assert job.id == "job-trigger"


def test_ensure_job_for_store_failure(supabase):
    supabase.fail("app_processing_jobs", "select", RuntimeError("db down"))

    with pytest.raises(ProcessingError) as exc_info:
        processing_jobs.ensure_job_for("sub-1")

    assert exc_info.value.stage == "creating"


def test_start_processing_stamps_started_at(supabase):
    _seed_job(supabase)
    job = processing_jobs.get_job_for("sub-1")

    updated = processing_jobs.update_job_status(job, JobStatus.PROCESSING, 0)

    row = supabase.rows("app_processing_jobs")[0]
    assert updated.status == JobStatus.PROCESSING
    assert updated.started_at is not None
    assert row["status"] == "processing"
    assert row["started_at"] is not None
    assert "completed_at" not in row


def test_progress_update_does_not_restamp_started_at(supabase):
    _seed_job(supabase, status="processing", progress=40, started_at="2025-01-01T00:00:00+00:00")
    job = processing_jobs.get_job_for("sub-1")

    processing_jobs.update_job_status(job, JobStatus.PROCESSING, 70)

    row = supabase.rows("app_processing_jobs")[0]
    assert row["progress"] == 70
    assert row["started_at"] == "2025-01-01T00:00:00+00:00"


def test_complete_stamps_completed_at(supabase):
    _seed_job(supabase, status="processing", progress=90)
    job = processing_jobs.get_job_for("sub-1")

    updated = processing_jobs.update_job_status(job, JobStatus.COMPLETED, 100)

    assert updated.completed_at is not None
    assert supabase.rows("app_processing_jobs")[0]["completed_at"] is not None


def test_failed_records_error_message(supabase):
    _seed_job(supabase, status="processing", progress=40)
    job = processing_jobs.get_job_for("sub-1")

    updated = processing_jobs.update_job_status(job, JobStatus.FAILED, 40, "Failed to process app assets")

    assert updated.is_terminal
    assert supabase.rows("app_processing_jobs")[0]["error_message"] == "Failed to process app assets"


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("completed", "processing"),
        ("failed", "processing"),
        ("processing", "pending"),
        ("pending", "completed"),
    ],
)
def test_backward_or_skipping_transitions_are_rejected(supabase, current, target):
    _seed_job(supabase, status=current, progress=50)
    job = processing_jobs.get_job_for("sub-1")

    with pytest.raises(ProcessingError, match="Invalid processing job transition"):
        processing_jobs.update_job_status(job, JobStatus(target), 100)


def test_progress_regression_is_rejected(supabase):
    _seed_job(supabase, status="processing", progress=70)
    job = processing_jobs.get_job_for("sub-1")

    with pytest.raises(ProcessingError, match="Invalid processing job progress"):
        processing_jobs.update_job_status(job, JobStatus.PROCESSING, 40)


def test_store_failure_on_update(supabase):
    _seed_job(supabase)
    job = processing_jobs.get_job_for("sub-1")
    supabase.fail("app_processing_jobs", "update", RuntimeError("db down"))

    with pytest.raises(ProcessingError, match="Failed to update processing status"):
        processing_jobs.update_job_status(job, JobStatus.PROCESSING, 0)


def test_get_processing_status_read_path(supabase):
    assert processing_jobs.get_processing_status("sub-1") is None
    _seed_job(supabase)
    assert processing_jobs.get_processing_status("sub-1").id == "job-1"

    supabase.fail("app_processing_jobs", "select", RuntimeError("db down"))
    assert processing_jobs.get_processing_status("sub-1") is None
