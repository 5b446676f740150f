# app/auth/dependencies.py — Bearer token → developer AuthContext

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.models import AuthContext
from app.auth.tokens import (
    InvalidJWTTypeError,
    JWTDecodeError,
    decode_session_jwt,
    hash_api_token,
)
from app.database import get_supabase_client

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _auth_from_session(token: str) -> AuthContext | None:
    try:
        payload = decode_session_jwt(token)
    except InvalidJWTTypeError as exc:
        raise _unauthorized("Invalid JWT type for developer endpoints") from exc
    except JWTDecodeError:
        return None
    return AuthContext(user_id=payload.user_id, role=payload.role, auth_method="jwt")


def _load_api_token(client: Any, token: str) -> dict[str, Any]:
    result = (
        client.table("api_tokens")
        .select("id, user_id, role, expires_at, revoked_at")
        .eq("token_hash", hash_api_token(token))
        .limit(1)
        .execute()
    )
    if not result.data:
        raise _unauthorized("Invalid authentication token")

    record = result.data[0]
    if record.get("revoked_at") is not None:
        raise _unauthorized("API token is revoked")
    expires_at = _parse_timestamp(record.get("expires_at"))
    if expires_at is not None and expires_at <= datetime.now(timezone.utc):
        raise _unauthorized("API token is expired")
    return record


def _touch_api_token(client: Any, token_id: str) -> None:
    try:
        client.table("api_tokens").update(
            {"last_used_at": datetime.now(timezone.utc).isoformat()}
        ).eq("id", token_id).execute()
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Failed to record API token usage",
            extra={"token_id": token_id, "error": str(exc)},
        )


async def get_current_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthContext:
    """
    Resolve the calling developer. Session JWTs are tried first; anything
    that does not decode as one is looked up as a hashed API token.
    """
    if credentials is None:
        raise _unauthorized("Missing authorization token")

    session = _auth_from_session(credentials.credentials)
    if session is not None:
        return session

    client = get_supabase_client()
    record = _load_api_token(client, credentials.credentials)
    _touch_api_token(client, record["id"])

    return AuthContext(
        user_id=record.get("user_id"),
        role=record.get("role") or "developer",
        auth_method="api_token",
    )
