# app/services/developer_access.py — Developer ownership and payment gate

from __future__ import annotations

import logging

from app.auth.models import AuthContext
from app.database import get_supabase_client
from app.models.developer import DeveloperProfile
from app.utils.exceptions import ErrorCode, PublishingError

logger = logging.getLogger(__name__)


def _load_developer_profile(developer_id: str) -> DeveloperProfile | None:
    client = get_supabase_client()
    result = (
        client.table("developer_profiles")
        .select("id, payment_status, user_id")
        .eq("id", developer_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return DeveloperProfile.model_validate(result.data[0])


def caller_owns_developer(developer_id: str, auth: AuthContext) -> bool:
    """Ownership-only check for read paths; payment status is not required."""
    if not auth.is_authenticated_user:
        return False
    profile = _load_developer_profile(developer_id)
    return profile is not None and profile.user_id == auth.user_id


def authorize_developer(developer_id: str, auth: AuthContext) -> DeveloperProfile:
    """
    Confirm the caller owns an active, payment-enabled developer profile.

    Raises PublishingError with PROFILE_NOT_FOUND, PERMISSION_DENIED or
    INACTIVE_ACCOUNT; any other failure surfaces as PERMISSION_ERROR.
    Must run before any submission row is written.
    """
    if not auth.is_authenticated_user:
        logger.warning("No authenticated user found", extra={"developer_id": developer_id})
        raise PublishingError(
            "Failed to verify developer permissions",
            ErrorCode.PERMISSION_ERROR,
            {"original_error": "Not authenticated"},
        )

    try:
        profile = _load_developer_profile(developer_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Failed to fetch developer profile",
            extra={"developer_id": developer_id},
        )
        raise PublishingError(
            "Failed to verify developer permissions",
            ErrorCode.PERMISSION_ERROR,
            {"original_error": str(exc)},
        ) from exc

    if profile is None:
        raise PublishingError(
            "Developer profile not found. Please complete registration.",
            ErrorCode.PROFILE_NOT_FOUND,
        )

    if profile.user_id != auth.user_id:
        logger.warning(
            "User does not own this developer profile",
            extra={
                "developer_id": developer_id,
                "profile_user_id": profile.user_id,
                "current_user_id": auth.user_id,
            },
        )
        raise PublishingError(
            "Permission denied. You do not own this developer profile.",
            ErrorCode.PERMISSION_DENIED,
        )

    if not profile.is_payment_active:
        raise PublishingError(
            "Developer account is not active. Please complete payment.",
            ErrorCode.INACTIVE_ACCOUNT,
            {"payment_status": profile.payment_status},
        )

    return profile
