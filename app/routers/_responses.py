# app/routers/_responses.py — shared API response envelopes

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.models.outcome import PublishErr
from app.utils.exceptions import ErrorCode

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_ICON_URL: 400,
    ErrorCode.INVALID_REPO_URL: 400,
    ErrorCode.INVALID_SCREENSHOT_URL: 400,
    ErrorCode.PROFILE_NOT_FOUND: 404,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.INACTIVE_ACCOUNT: 403,
    ErrorCode.PERMISSION_ERROR: 403,
    ErrorCode.DUPLICATE_APP_NAME: 409,
}


class DataEnvelope(BaseModel):
    data: Any


class ErrorEnvelope(BaseModel):
    error: str
    code: str | None = None
    details: dict[str, Any] | None = None


def error_response(
    message: str,
    status_code: int,
    *,
    code: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if code is not None:
        content["code"] = code
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def taxonomy_error_response(outcome: PublishErr) -> JSONResponse:
    if outcome.kind == "processing":
        return error_response(
            outcome.message,
            502,
            details={"submission_id": outcome.submission_id, "stage": outcome.stage},
        )
    code = outcome.code or ErrorCode.UNKNOWN_ERROR
    return error_response(
        outcome.message,
        _STATUS_BY_CODE.get(code, 500),
        code=code.value,
        details=outcome.details,
    )
