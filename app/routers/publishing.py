# app/routers/publishing.py — Developer app publishing endpoints

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.auth import AuthContext, get_current_auth
from app.models.outcome import PublishErr
from app.models.submission import SubmissionFields
from app.routers._responses import DataEnvelope, ErrorEnvelope, error_response, taxonomy_error_response
from app.services.developer_access import caller_owns_developer
from app.services.pipeline_events import LoggingObserver, TimelineObserver
from app.services.publishing import (
    get_app_submission,
    get_app_submissions,
    get_processing_status,
    run_publish_pipeline,
)

router = APIRouter()


class SubmissionGetRequest(BaseModel):
    id: str


class SubmissionsListRequest(BaseModel):
    developer_id: str


class ProcessingStatusRequest(BaseModel):
    submission_id: str


@router.post(
    "/publish",
    response_model=DataEnvelope,
    responses={
        400: {"model": ErrorEnvelope},
        403: {"model": ErrorEnvelope},
        404: {"model": ErrorEnvelope},
        409: {"model": ErrorEnvelope},
        502: {"model": ErrorEnvelope},
    },
)
async def publish(
    payload: SubmissionFields,
    auth: AuthContext = Depends(get_current_auth),
):
    """Validate, persist and build an app submission; returns it in pending_review."""
    outcome = await run_publish_pipeline(
        payload,
        payload.repository_url,
        auth=auth,
        observers=[LoggingObserver(), TimelineObserver()],
    )
    if isinstance(outcome, PublishErr):
        return taxonomy_error_response(outcome)
    return DataEnvelope(data=outcome.submission.model_dump(mode="json"))


@router.post("/submissions/get", response_model=DataEnvelope, responses={404: {"model": ErrorEnvelope}})
async def get_submission(
    payload: SubmissionGetRequest,
    auth: AuthContext = Depends(get_current_auth),
):
    submission = get_app_submission(payload.id)
    if submission is None or not caller_owns_developer(submission.developer_id, auth):
        return error_response("Submission not found", 404)
    return DataEnvelope(data=submission.model_dump(mode="json"))


@router.post("/submissions/list", response_model=DataEnvelope, responses={403: {"model": ErrorEnvelope}})
async def list_submissions(
    payload: SubmissionsListRequest,
    auth: AuthContext = Depends(get_current_auth),
):
    if not caller_owns_developer(payload.developer_id, auth):
        return error_response("Forbidden developer access", 403)
    submissions = get_app_submissions(payload.developer_id)
    return DataEnvelope(data=[submission.model_dump(mode="json") for submission in submissions])


@router.post("/processing/get", response_model=DataEnvelope, responses={404: {"model": ErrorEnvelope}})
async def get_processing_job(
    payload: ProcessingStatusRequest,
    auth: AuthContext = Depends(get_current_auth),
):
    submission = get_app_submission(payload.submission_id)
    if submission is None or not caller_owns_developer(submission.developer_id, auth):
        return error_response("Submission not found", 404)
    job = get_processing_status(payload.submission_id)
    if job is None:
        return error_response("Processing job not found", 404)
    return DataEnvelope(data=job.model_dump(mode="json"))
