# app/auth/__init__.py — Authentication module

from app.auth.dependencies import get_current_auth
from app.auth.models import AuthContext

__all__ = [
    "get_current_auth",
    "AuthContext",
]
