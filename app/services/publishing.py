# app/services/publishing.py — App submission & build pipeline

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Callable

from pydantic import ValidationError

from app.auth.models import AuthContext
from app.config import get_settings
from app.models.outcome import PublishErr, PublishOk, PublishOutcome
from app.models.processing import JobStatus, ProcessingJob
from app.models.submission import AppSubmission, SubmissionFields
from app.services import processing_jobs, submission_store
from app.services.asset_processor import register_assets
from app.services.builder import Builder, get_builder
from app.services.developer_access import authorize_developer
from app.services.pipeline_events import CallbackObserver, LoggingObserver, PipelineEventSink
from app.services.submission_validation import validate_submission_fields
from app.utils.exceptions import (
    ErrorCode,
    ProcessingError,
    PublishingError,
    is_row_level_security_denial,
)

logger = logging.getLogger(__name__)

get_processing_status = processing_jobs.get_processing_status


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    CREATING = "creating"
    BUILDING = "building"
    PROCESSING_ASSETS = "processing_assets"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


# Processing-stage sub-progress (0-100) is reported inside the 20-90 band.
_PROCESSING_BAND_START = 20
_PROCESSING_BAND_SCALE = 0.7


class _ProgressReporter:
    def __init__(self, sink: PipelineEventSink):
        self.sink = sink
        self.submission_id: str | None = None
        self.last = 0

    def report(self, stage: PipelineStage, value: float) -> None:
        progress = min(100, max(self.last, round(value)))
        self.last = progress
        self.sink.emit_progress(self.submission_id, stage.value, progress)

    def report_processing(self, stage: PipelineStage, sub_progress: int) -> None:
        self.report(stage, _PROCESSING_BAND_START + sub_progress * _PROCESSING_BAND_SCALE)


def _unexpected_error(exc: Exception) -> PublishingError:
    original = getattr(exc, "message", None) or str(exc)
    if is_row_level_security_denial(exc):
        return PublishingError(
            "Permission denied. Please ensure you have the correct permissions.",
            ErrorCode.PERMISSION_DENIED,
            {"original_error": original},
        )
    return PublishingError(
        original or "An unexpected error occurred while publishing the app",
        ErrorCode.UNKNOWN_ERROR,
        {"original_error": original},
    )


def _mark_job_failed(job: ProcessingJob | None, message: str) -> None:
    if job is None or job.is_terminal:
        return
    try:
        processing_jobs.update_job_status(job, JobStatus.FAILED, job.progress, message)
    except ProcessingError:
        logger.exception("Failed to mark processing job as failed", extra={"job_id": job.id})


async def _process_submission(
    submission: AppSubmission,
    builder: Builder,
    sink: PipelineEventSink,
    progress: _ProgressReporter,
) -> None:
    job: ProcessingJob | None = None
    stage = PipelineStage.BUILDING
    try:
        job = processing_jobs.get_job_for(submission.id)
        job = processing_jobs.update_job_status(job, JobStatus.PROCESSING, 0)
        progress.report_processing(stage, 0)

        sink.emit_step(stage.value, submission_id=submission.id, job_id=job.id)
        try:
            build = await builder.build(submission.repository_url or "", submission.build_config)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Repository processing failed", extra={"submission_id": submission.id})
            raise ProcessingError(
                "Failed to process repository",
                submission_id=submission.id,
                stage=stage.value,
            ) from exc
        job = processing_jobs.update_job_status(job, JobStatus.PROCESSING, 40)
        progress.report_processing(stage, 40)

        stage = PipelineStage.PROCESSING_ASSETS
        sink.emit_step(stage.value, submission_id=submission.id, asset_count=len(build.assets))
        register_assets(submission, build.assets)
        job = processing_jobs.update_job_status(job, JobStatus.PROCESSING, 70)
        progress.report_processing(stage, 70)

        stage = PipelineStage.FINALIZING
        sink.emit_step(stage.value, submission_id=submission.id, binary_url=build.binary_url)
        submission_store.mark_pending_review(submission.id, build.binary_url)
        job = processing_jobs.update_job_status(job, JobStatus.PROCESSING, 90)
        progress.report_processing(stage, 90)

        job = processing_jobs.update_job_status(job, JobStatus.COMPLETED, 100)
        progress.report_processing(stage, 100)
    except Exception as exc:  # noqa: BLE001
        message = getattr(exc, "message", None) or str(exc) or "Processing failed"
        _mark_job_failed(job, message)
        if isinstance(exc, ProcessingError) or is_row_level_security_denial(exc):
            if isinstance(exc, ProcessingError) and exc.stage is None:
                exc.stage = stage.value
            raise
        raise ProcessingError(message, submission_id=submission.id, stage=stage.value) from exc


async def _run_stages(
    fields: SubmissionFields,
    repository_url: str | None,
    auth: AuthContext,
    file: bytes | None,
    builder: Builder,
    sink: PipelineEventSink,
    progress: _ProgressReporter,
) -> AppSubmission:
    sink.emit_step(
        PipelineStage.VALIDATING.value,
        app_name=fields.name,
        developer_id=fields.developer_id,
        repository_url=repository_url,
        binary_upload_bytes=len(file) if file else 0,
    )
    progress.report(PipelineStage.VALIDATING, 0)
    validate_submission_fields(fields, repository_url)

    sink.emit_step(PipelineStage.AUTHORIZING.value, developer_id=fields.developer_id)
    authorize_developer(fields.developer_id, auth)
    progress.report(PipelineStage.AUTHORIZING, 10)

    submission = submission_store.create_submission(fields, repository_url)
    progress.submission_id = submission.id
    sink.emit_step(PipelineStage.CREATING.value, submission_id=submission.id)
    processing_jobs.ensure_job_for(submission.id)
    progress.report(PipelineStage.CREATING, 20)

    await _process_submission(submission, builder, sink, progress)

    final = submission_store.get_submission(submission.id)
    if final is None:
        raise PublishingError("Failed to retrieve final submission state", ErrorCode.RETRIEVAL_FAILED)
    progress.report(PipelineStage.DONE, 100)
    sink.emit_step(PipelineStage.DONE.value, submission_id=submission.id)
    return final


async def run_publish_pipeline(
    fields: SubmissionFields | dict[str, Any],
    repository_url: str | None = None,
    *,
    auth: AuthContext,
    file: bytes | None = None,
    on_progress: Callable[[int], Any] | None = None,
    builder: Builder | None = None,
    observers: list[Any] | None = None,
) -> PublishOutcome:
    """
    Validate, authorize, persist and process one app submission.

    Returns PublishOk with the re-read submission, or PublishErr describing
    the failure. Rows written before a failure are left in place. Observer
    delivery finishes in the background after this returns.
    """
    settings = get_settings()
    if not isinstance(fields, SubmissionFields):
        try:
            fields = SubmissionFields.model_validate(fields)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            ]
            return PublishErr(
                kind="publishing",
                message="Validation failed: " + ", ".join(errors),
                code=ErrorCode.VALIDATION_ERROR,
                details={"errors": errors},
            )
    repository_url = repository_url or fields.repository_url

    run_observers = list(observers) if observers is not None else [LoggingObserver()]
    if on_progress is not None:
        run_observers.append(CallbackObserver(on_progress))

    sink = PipelineEventSink(run_observers, maxsize=settings.event_queue_size)
    progress = _ProgressReporter(sink)
    sink.start()
    log_context = {
        "app_name": fields.name,
        "developer_id": fields.developer_id,
        "repository_url": repository_url,
    }
    logger.info("Starting app publishing process", extra=log_context)
    try:
        try:
            submission = await _run_stages(
                fields,
                repository_url,
                auth,
                file,
                builder or get_builder(),
                sink,
                progress,
            )
            outcome: PublishOutcome = PublishOk(submission=submission)
            logger.info("App publishing completed", extra={**log_context, "submission_id": submission.id})
        except (PublishingError, ProcessingError) as exc:
            outcome = PublishErr.from_exception(exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected app publishing failure", extra=log_context)
            outcome = PublishErr.from_exception(_unexpected_error(exc))

        if isinstance(outcome, PublishErr):
            code = outcome.code.value if outcome.code else None
            logger.warning(
                "App publishing failed: %s",
                outcome.message,
                extra={
                    **log_context,
                    "kind": outcome.kind,
                    "code": code,
                    "submission_id": progress.submission_id,
                },
            )
            sink.emit_step(
                PipelineStage.FAILED.value,
                submission_id=progress.submission_id,
                kind=outcome.kind,
                code=code,
                message=outcome.message,
            )
    finally:
        sink.close_in_background(timeout=settings.event_drain_timeout_seconds)
    return outcome


async def publish_app(
    fields: SubmissionFields | dict[str, Any],
    repository_url: str | None = None,
    *,
    auth: AuthContext,
    file: bytes | None = None,
    on_progress: Callable[[int], Any] | None = None,
    builder: Builder | None = None,
    observers: list[Any] | None = None,
) -> AppSubmission:
    """Raising form of `run_publish_pipeline`."""
    outcome = await run_publish_pipeline(
        fields,
        repository_url,
        auth=auth,
        file=file,
        on_progress=on_progress,
        builder=builder,
        observers=observers,
    )
    if isinstance(outcome, PublishErr):
        raise outcome.to_exception()
    return outcome.submission


def get_app_submission(submission_id: str) -> AppSubmission | None:
    try:
        return submission_store.get_submission(submission_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to fetch app submission", extra={"submission_id": submission_id})
        return None


def get_app_submissions(developer_id: str) -> list[AppSubmission]:
    try:
        return submission_store.list_submissions(developer_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to fetch app submissions", extra={"developer_id": developer_id})
        return []
