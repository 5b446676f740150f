# app/utils/exceptions.py — Publishing/processing error taxonomy

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ICON_URL = "INVALID_ICON_URL"
    INVALID_REPO_URL = "INVALID_REPO_URL"
    INVALID_SCREENSHOT_URL = "INVALID_SCREENSHOT_URL"
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INACTIVE_ACCOUNT = "INACTIVE_ACCOUNT"
    DUPLICATE_APP_NAME = "DUPLICATE_APP_NAME"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PublishingError(Exception):
    """Caller-facing failure with a stable code.

    Raised for every precondition failure (validation, authorization,
    duplicate name) and for unclassified failures wrapped at the
    orchestrator boundary.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.details = details

    def __repr__(self) -> str:
        return f"PublishingError(code={self.code.value!r}, message={self.message!r})"


class ProcessingError(Exception):
    """Failure after the submission row exists (build, assets, job updates)."""

    def __init__(
        self,
        message: str,
        *,
        submission_id: str | None = None,
        stage: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.submission_id = submission_id
        self.stage = stage

    def __repr__(self) -> str:
        return f"ProcessingError(stage={self.stage!r}, message={self.message!r})"


def is_unique_violation(exc: Exception) -> bool:
    return getattr(exc, "code", None) == "23505"


def is_row_level_security_denial(exc: Exception) -> bool:
    return "row-level security" in str(getattr(exc, "message", None) or exc)
