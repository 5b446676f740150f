# app/services/submission_store.py — Durable AppSubmission records

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from postgrest.exceptions import APIError

from app.database import get_supabase_client
from app.models.submission import AppSubmission, SubmissionFields, SubmissionStatus
from app.utils.exceptions import ErrorCode, PublishingError, is_unique_violation

logger = logging.getLogger(__name__)

_TABLE = "app_submissions"
_SELECT_WITH_JOB = "*, processing_job:app_processing_jobs(*)"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _submission_row(fields: SubmissionFields, repository_url: str) -> dict[str, Any]:
    now = _iso_now()
    build_config = fields.build_config.model_dump(exclude_none=True) if fields.build_config else None
    return {
        "developer_id": fields.developer_id,
        "name": fields.name,
        "description": fields.description,
        "short_description": fields.short_description,
        "category": fields.category,
        "tags": list(fields.tags),
        "price": fields.price or 0,
        "icon_url": fields.icon_url,
        "screenshots": list(fields.screenshots),
        "features": list(fields.features),
        "version": fields.version,
        "status": SubmissionStatus.PENDING.value,
        "submission_date": now,
        "last_updated": now,
        "metadata": {
            "repository_url": repository_url,
            "build_config": build_config,
        },
    }


def create_submission(fields: SubmissionFields, repository_url: str) -> AppSubmission:
    """
    Insert a new submission in `pending`.
    A second submission with the same (developer_id, name) is rejected
    with DUPLICATE_APP_NAME.
    """
    client = get_supabase_client()
    try:
        result = client.table(_TABLE).insert(_submission_row(fields, repository_url)).execute()
    except APIError as exc:
        if is_unique_violation(exc):
            logger.info(
                "Duplicate app name rejected",
                extra={"developer_id": fields.developer_id, "app_name": fields.name},
            )
            raise PublishingError(
                "An app with this name already exists",
                ErrorCode.DUPLICATE_APP_NAME,
                {"name": fields.name},
            ) from exc
        raise

    if not result.data:
        raise PublishingError("Failed to create app submission", ErrorCode.SUBMISSION_FAILED)
    return AppSubmission.from_row(result.data[0])


def get_submission(submission_id: str) -> AppSubmission | None:
    client = get_supabase_client()
    result = (
        client.table(_TABLE)
        .select(_SELECT_WITH_JOB)
        .eq("id", submission_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return AppSubmission.from_row(result.data[0])


def list_submissions(developer_id: str) -> list[AppSubmission]:
    client = get_supabase_client()
    result = (
        client.table(_TABLE)
        .select(_SELECT_WITH_JOB)
        .eq("developer_id", developer_id)
        .order("created_at", desc=True)
        .execute()
    )
    return [AppSubmission.from_row(row) for row in result.data or []]


def mark_pending_review(submission_id: str, binary_url: str) -> None:
    client = get_supabase_client()
    client.table(_TABLE).update(
        {
            "binary_url": binary_url,
            "status": SubmissionStatus.PENDING_REVIEW.value,
            "last_updated": _iso_now(),
        }
    ).eq("id", submission_id).execute()
