# app/services/processing_jobs.py — ProcessingJob status tracking

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from postgrest.exceptions import APIError

from app.database import get_supabase_client
from app.models.processing import JobStatus, ProcessingJob
from app.utils.exceptions import ProcessingError, is_unique_violation

logger = logging.getLogger(__name__)

_TABLE = "app_processing_jobs"

_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


def _fetch_job_row(submission_id: str) -> dict[str, Any] | None:
    client = get_supabase_client()
    result = (
        client.table(_TABLE)
        .select("*")
        .eq("app_submission_id", submission_id)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def ensure_job_for(submission_id: str) -> ProcessingJob:
    """
    Return the submission's job, inserting a pending one if no row exists.
    A row created concurrently by a store-side trigger is reused.
    """
    try:
        row = _fetch_job_row(submission_id)
        if row is None:
            try:
                result = (
                    get_supabase_client()
                    .table(_TABLE)
                    .insert(
                        {
                            "app_submission_id": submission_id,
                            "status": JobStatus.PENDING.value,
                            "progress": 0,
                        }
                    )
                    .execute()
                )
                row = result.data[0] if result.data else None
            except APIError as exc:
                if not is_unique_violation(exc):
                    raise
                row = _fetch_job_row(submission_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to create processing job", extra={"submission_id": submission_id})
        raise ProcessingError(
            "Failed to create processing job",
            submission_id=submission_id,
            stage="creating",
        ) from exc

    if row is None:
        raise ProcessingError(
            "Failed to create processing job",
            submission_id=submission_id,
            stage="creating",
        )
    return ProcessingJob.model_validate(row)


def get_job_for(submission_id: str) -> ProcessingJob:
    try:
        row = _fetch_job_row(submission_id)
    except Exception as exc:  # noqa: BLE001
        raise ProcessingError(
            "Failed to get processing job",
            submission_id=submission_id,
        ) from exc
    if row is None:
        raise ProcessingError("Failed to get processing job", submission_id=submission_id)
    return ProcessingJob.model_validate(row)


def update_job_status(
    job: ProcessingJob,
    status: JobStatus,
    progress: int,
    error_message: str | None = None,
) -> ProcessingJob:
    """
    Move `job` to `status` at `progress` and persist it.

    Stamps started_at on entering `processing` at progress 0, completed_at on
    `completed`, and records error_message on `failed`. Backward transitions
    and progress regressions raise ProcessingError.
    """
    status = JobStatus(status)
    if status not in _ALLOWED_TRANSITIONS[job.status]:
        raise ProcessingError(
            f"Invalid processing job transition {job.status.value} -> {status.value}",
            submission_id=job.app_submission_id,
        )
    if not 0 <= progress <= 100 or progress < job.progress:
        raise ProcessingError(
            f"Invalid processing job progress {job.progress} -> {progress}",
            submission_id=job.app_submission_id,
        )

    now = datetime.now(timezone.utc)
    changes: dict[str, Any] = {"status": status, "progress": progress}
    patch: dict[str, Any] = {"status": status.value, "progress": progress}
    if status == JobStatus.PROCESSING and job.status != JobStatus.PROCESSING and progress == 0:
        changes["started_at"] = now
        patch["started_at"] = now.isoformat()
    if status == JobStatus.COMPLETED:
        changes["completed_at"] = now
        patch["completed_at"] = now.isoformat()
    if status == JobStatus.FAILED:
        changes["error_message"] = error_message
        patch["error_message"] = error_message

    try:
        get_supabase_client().table(_TABLE).update(patch).eq("id", job.id).execute()
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Failed to update processing status",
            extra={"job_id": job.id, "status": status.value},
        )
        raise ProcessingError(
            "Failed to update processing status",
            submission_id=job.app_submission_id,
        ) from exc

    return job.model_copy(update=changes)


def get_processing_status(submission_id: str) -> ProcessingJob | None:
    try:
        row = _fetch_job_row(submission_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to get processing status", extra={"submission_id": submission_id})
        return None
    return ProcessingJob.model_validate(row) if row else None
