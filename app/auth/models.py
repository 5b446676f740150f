# app/auth/models.py — AuthContext, TokenPayload

from typing import Literal

from pydantic import BaseModel


class SessionTokenPayload(BaseModel):
    sub: str
    user_id: str
    role: str = "developer"
    type: str = "session"
    exp: int | None = None
    iat: int | None = None


class AuthContext(BaseModel):
    user_id: str | None = None
    role: str = "developer"
    auth_method: Literal["jwt", "api_token"]

    @property
    def is_service_account(self) -> bool:
        return self.auth_method == "api_token" and self.user_id is None

    @property
    def is_authenticated_user(self) -> bool:
        return bool(self.user_id)
