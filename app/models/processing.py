# app/models/processing.py — Processing job and asset schemas

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AssetType(str, Enum):
    ICON = "icon"
    SCREENSHOT = "screenshot"
    PREVIEW = "preview"


class AssetStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingJob(BaseModel):
    id: str
    app_submission_id: str
    status: JobStatus
    progress: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in {JobStatus.COMPLETED, JobStatus.FAILED}


class AppAsset(BaseModel):
    id: str
    app_submission_id: str
    asset_type: AssetType
    original_url: str
    status: AssetStatus = AssetStatus.PENDING

    model_config = ConfigDict(from_attributes=True)
