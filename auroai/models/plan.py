"""
auroai/models/plan.py

Plan model for the subscription tiers.

Plans represent editing quotas (teste, micro, meso, macro). Prices live at
Stripe; only the price identifiers are known here.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict


class Plan(BaseModel):
    """
    Plan represents a subscription tier.

    Examples:
    - teste (default, free trial)
    - micro
    - meso
    - macro (fair-use unlimited)
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    name: str
    monthly_credits: Optional[int] = None  # None = unlimited (fair use)
    price_id: Optional[str] = None
    is_default: bool = False

    @property
    def is_unlimited(self) -> bool:
        return self.monthly_credits is None
