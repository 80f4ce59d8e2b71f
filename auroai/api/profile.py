"""
Profile API routes.

- GET /api/profile: dashboard summary (plan, credits, WhatsApp status)
- PATCH /api/profile: update the display name
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auroai.core.auth import AuthContext, get_current_user
from auroai.features.profiles.service import ProfileService


router = APIRouter(prefix="/profile", tags=["profile"])


class CreditsResponse(BaseModel):
    used: int
    max: int
    remaining: int
    percentage: float
    unlimited: bool


class WhatsAppStatusResponse(BaseModel):
    connected: bool
    number: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    current_plan: str
    plan_name: str
    plan_expires_at: Optional[str] = None
    subscribed: bool
    credits: CreditsResponse
    can_upgrade: bool
    whatsapp: WhatsAppStatusResponse


class ProfileUpdateRequest(BaseModel):
    full_name: str


def get_profile_service() -> ProfileService:
    return ProfileService()


@router.get("", response_model=ProfileResponse)
async def get_profile(
    auth: AuthContext = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    return await asyncio.to_thread(service.get_summary, auth.user.user_id)


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    return await asyncio.to_thread(service.update_full_name, auth.user.user_id, payload.full_name)
