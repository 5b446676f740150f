# app/services/submission_validation.py — Structural checks on submitted app fields

from __future__ import annotations

import logging
from urllib.parse import urlparse

from app.models.submission import SubmissionFields
from app.utils.exceptions import ErrorCode, PublishingError

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("name", "App name is required"),
    ("description", "App description is required"),
    ("short_description", "Short description is required"),
    ("category", "Category is required"),
    ("icon_url", "Icon URL is required"),
    ("developer_id", "Developer ID is required"),
)


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def is_absolute_url(value: str | None) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def validate_submission_fields(fields: SubmissionFields, repository_url: str | None) -> None:
    """
    Raise PublishingError unless every required field is present and
    every URL is absolute. Missing fields are reported together.
    """
    errors: list[str] = []
    for field_name, message in _REQUIRED_FIELDS:
        if _is_blank(getattr(fields, field_name)):
            errors.append(message)
    if _is_blank(repository_url):
        errors.append("Repository URL is required")
    if fields.price < 0:
        errors.append("Price cannot be negative")

    if errors:
        logger.info("App data validation failed", extra={"errors": errors})
        raise PublishingError(
            "Validation failed: " + ", ".join(errors),
            ErrorCode.VALIDATION_ERROR,
            {"errors": errors},
        )

    if not is_absolute_url(fields.icon_url):
        raise PublishingError(
            "Invalid icon URL format. Please provide a valid URL.",
            ErrorCode.INVALID_ICON_URL,
        )

    if not is_absolute_url(repository_url):
        raise PublishingError(
            "Invalid repository URL format. Please provide a valid URL.",
            ErrorCode.INVALID_REPO_URL,
        )

    for index, url in enumerate(fields.screenshots):
        if not is_absolute_url(url):
            raise PublishingError(
                f"Invalid screenshot URL format at position {index + 1}",
                ErrorCode.INVALID_SCREENSHOT_URL,
                {"index": index, "url": url},
            )
