# app/routers/auth.py — Caller identity endpoint

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.auth import AuthContext, get_current_auth
from app.routers._responses import DataEnvelope

router = APIRouter()


class MeResponse(BaseModel):
    user_id: str | None = None
    role: str
    auth_method: str


@router.post("/me", response_model=DataEnvelope)
async def me(auth: AuthContext = Depends(get_current_auth)) -> DataEnvelope:
    """Protected endpoint used for auth verification."""
    return DataEnvelope(data=MeResponse(**auth.model_dump()).model_dump())
