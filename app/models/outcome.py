# app/models/outcome.py — Tagged publish result

from dataclasses import dataclass, field
from typing import Any, Literal

from app.models.submission import AppSubmission
from app.utils.exceptions import ErrorCode, ProcessingError, PublishingError


@dataclass(frozen=True)
class PublishOk:
    submission: AppSubmission
    ok: Literal[True] = True


@dataclass(frozen=True)
class PublishErr:
    kind: Literal["publishing", "processing"]
    message: str
    code: ErrorCode | None = None
    details: dict[str, Any] | None = None
    submission_id: str | None = None
    stage: str | None = None
    ok: Literal[False] = field(default=False)

    @classmethod
    def from_exception(cls, exc: PublishingError | ProcessingError) -> "PublishErr":
        if isinstance(exc, ProcessingError):
            return cls(
                kind="processing",
                message=exc.message,
                submission_id=exc.submission_id,
                stage=exc.stage,
            )
        return cls(
            kind="publishing",
            message=exc.message,
            code=exc.code,
            details=exc.details,
        )

    def to_exception(self) -> PublishingError:
        """Caller-facing error; processing failures surface as UNKNOWN_ERROR."""
        if self.kind == "processing":
            return PublishingError(
                self.message,
                ErrorCode.UNKNOWN_ERROR,
                {
                    "original_error": self.message,
                    "submission_id": self.submission_id,
                    "stage": self.stage,
                },
            )
        return PublishingError(
            self.message,
            self.code or ErrorCode.UNKNOWN_ERROR,
            self.details,
        )


PublishOutcome = PublishOk | PublishErr
