from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionProfile(BaseModel):
    """Per-user plan entitlement as last reconciled from the billing provider."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    current_plan: str = "teste"
    plan_expires_at: Optional[datetime] = None
    subscribed: bool = False
    credits_used: int = 0
    max_credits: int = 0
    full_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    whatsapp_connected: bool = False
    updated_at: Optional[datetime] = None
