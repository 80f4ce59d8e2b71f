"""
Dashboard profile summary.

Combines the stored profile with the plan catalog: credits used against the
plan allowance, the remaining balance and a usage percentage capped at 100.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from auroai.core.errors import ValidationError
from auroai.features.plans.service import get_plan
from auroai.features.profiles.store import ProfileStore
from auroai.models.profile import SubscriptionProfile

MAX_FULL_NAME_LENGTH = 120


@dataclass(frozen=True)
class CreditUsage:
    used: int
    max: int
    remaining: int
    percentage: float
    unlimited: bool = False


def credit_usage(credits_used: Optional[int], max_credits: Optional[int], unlimited: bool = False) -> CreditUsage:
    used = max(credits_used or 0, 0)
    allowance = max(max_credits or 0, 0)
    if unlimited:
        return CreditUsage(used=used, max=allowance, remaining=allowance, percentage=0.0, unlimited=True)
    # A zero allowance counts as one so the bar fills instead of dividing by zero
    percentage = min(used / (allowance or 1) * 100, 100.0)
    return CreditUsage(
        used=used,
        max=allowance,
        remaining=max(allowance - used, 0),
        percentage=round(percentage, 2),
    )


def summarize(profile: SubscriptionProfile) -> Dict[str, Any]:
    plan = get_plan(profile.current_plan)
    usage = credit_usage(
        profile.credits_used,
        profile.max_credits,
        unlimited=bool(plan and plan.is_unlimited),
    )
    return {
        "user_id": profile.user_id,
        "full_name": profile.full_name,
        "current_plan": profile.current_plan,
        "plan_name": plan.name if plan else profile.current_plan,
        "plan_expires_at": profile.plan_expires_at.isoformat() if profile.plan_expires_at else None,
        "subscribed": profile.subscribed,
        "credits": {
            "used": usage.used,
            "max": usage.max,
            "remaining": usage.remaining,
            "percentage": usage.percentage,
            "unlimited": usage.unlimited,
        },
        "can_upgrade": profile.current_plan != "macro",
        "whatsapp": {
            "connected": profile.whatsapp_connected,
            "number": profile.whatsapp_number,
        },
    }


class ProfileService:
    def __init__(self, store: Optional[ProfileStore] = None):
        self.store = store or ProfileStore()

    def get_summary(self, user_id: str) -> Dict[str, Any]:
        return summarize(self.store.ensure(user_id))

    def update_full_name(self, user_id: str, full_name: Optional[str]) -> Dict[str, Any]:
        name = (full_name or "").strip()
        if not name:
            raise ValidationError("full_name must not be empty")
        if len(name) > MAX_FULL_NAME_LENGTH:
            raise ValidationError(f"full_name must be at most {MAX_FULL_NAME_LENGTH} characters")
        self.store.ensure(user_id)
        return summarize(self.store.update_fields(user_id, full_name=name))
