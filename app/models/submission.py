# app/models/submission.py — App submission schemas

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.models.processing import ProcessingJob


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class BuildConfig(BaseModel):
    node_version: str | None = None
    build_command: str | None = None
    output_dir: str | None = None

    model_config = ConfigDict(extra="allow")


class SubmissionMetadata(BaseModel):
    repository_url: str | None = None
    build_config: BuildConfig | None = None

    model_config = ConfigDict(extra="allow")


class SubmissionFields(BaseModel):
    """Developer-supplied values for one publish attempt.

    Everything is optional here; presence and format are checked by
    `validate_submission_fields` so all problems are reported together.
    """

    developer_id: str | None = None
    name: str | None = None
    description: str | None = None
    short_description: str | None = None
    category: str | None = None
    tags: list[str] = []
    price: float = 0
    icon_url: str | None = None
    screenshots: list[str] = []
    features: list[str] = []
    version: str | None = None
    repository_url: str | None = None
    build_config: BuildConfig | None = None


class AppSubmission(BaseModel):
    id: str
    developer_id: str
    name: str
    description: str | None = None
    short_description: str | None = None
    category: str | None = None
    tags: list[str] = []
    price: float = 0
    icon_url: str | None = None
    screenshots: list[str] = []
    features: list[str] = []
    version: str | None = None
    status: SubmissionStatus
    submission_date: datetime | None = None
    metadata: SubmissionMetadata | None = None
    binary_url: str | None = None
    last_updated: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processing_job: ProcessingJob | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def repository_url(self) -> str | None:
        return self.metadata.repository_url if self.metadata else None

    @property
    def build_config(self) -> BuildConfig | None:
        return self.metadata.build_config if self.metadata else None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AppSubmission":
        data = dict(row)
        # Embedded one-to-one selects come back as a list or a single object.
        job = data.get("processing_job")
        if isinstance(job, list):
            data["processing_job"] = job[0] if job else None
        return cls.model_validate(data)
