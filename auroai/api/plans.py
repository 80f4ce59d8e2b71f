"""
Plan catalog API.

GET /api/plans: the plan tiers, flagging the caller's current plan when a
bearer token is supplied. Reads the stored profile only; it does not contact
Stripe.
"""
import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auroai.core.auth import AuthContext, get_optional_user
from auroai.features.plans.service import list_plans
from auroai.features.profiles.store import ProfileStore


router = APIRouter(prefix="/plans", tags=["plans"])


class PlanResponse(BaseModel):
    id: str
    name: str
    monthly_credits: Optional[int] = None
    unlimited: bool
    price_id: Optional[str] = None
    is_current: bool = False


@router.get("", response_model=List[PlanResponse])
async def get_plans(auth: Optional[AuthContext] = Depends(get_optional_user)):
    current_plan = None
    if auth:
        profile = await asyncio.to_thread(ProfileStore().get, auth.user.user_id)
        current_plan = profile.current_plan if profile else None

    return [
        PlanResponse(
            id=plan.plan_id,
            name=plan.name,
            monthly_credits=plan.monthly_credits,
            unlimited=plan.is_unlimited,
            price_id=plan.price_id,
            is_current=plan.plan_id == current_plan,
        )
        for plan in list_plans()
    ]
