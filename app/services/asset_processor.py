# app/services/asset_processor.py — Register build assets for later transcoding

from __future__ import annotations

import logging

from app.database import get_supabase_client
from app.models.processing import AppAsset, AssetStatus, AssetType
from app.models.submission import AppSubmission
from app.utils.exceptions import ProcessingError

logger = logging.getLogger(__name__)


def register_assets(submission: AppSubmission, urls: list[str]) -> list[AppAsset]:
    """
    Insert one pending screenshot asset per URL.

    Rows are written one at a time; a failed insert aborts the call and
    leaves earlier rows in place.
    """
    client = get_supabase_client()
    registered: list[AppAsset] = []
    for url in urls:
        try:
            result = (
                client.table("app_assets")
                .insert(
                    {
                        "app_submission_id": submission.id,
                        "asset_type": AssetType.SCREENSHOT.value,
                        "original_url": url,
                        "status": AssetStatus.PENDING.value,
                    }
                )
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Failed to process app assets",
                extra={
                    "submission_id": submission.id,
                    "asset_url": url,
                    "registered_count": len(registered),
                },
            )
            raise ProcessingError(
                "Failed to process app assets",
                submission_id=submission.id,
                stage="processing_assets",
            ) from exc
        if result.data:
            registered.append(AppAsset.model_validate(result.data[0]))

    logger.info(
        "Assets processed",
        extra={"submission_id": submission.id, "asset_count": len(registered)},
    )
    return registered
