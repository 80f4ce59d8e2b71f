"""
auroai/features/plans/service.py

Plan catalog and price resolution.

Handles:
- The static plan catalog (teste, micro, meso, macro)
- Mapping Stripe price ids to plan names (fail-open to the default plan)
"""

from typing import Dict, List, Mapping, Optional

from auroai.core.config import settings
from auroai.models.plan import Plan


DEFAULT_PLAN_ID = "teste"

# Production price ids; each can be overridden with STRIPE_PRICE_<PLAN>
DEFAULT_PLANS = {
    "teste": {
        "name": "Teste",
        "monthly_credits": 5,
        "price_id": "price_1S9eiNRGP4n024FuzUZw50LJ",
        "is_default": True,
    },
    "micro": {
        "name": "Micro",
        "monthly_credits": 25,
        "price_id": "price_1S9d5HRGP4n024Fuvq3WeHCv",
        "is_default": False,
    },
    "meso": {
        "name": "Meso",
        "monthly_credits": 45,
        "price_id": "price_1S9d5HRGP4n024FunrJaW2Mr",
        "is_default": False,
    },
    "macro": {
        "name": "Macro",
        "monthly_credits": None,  # unlimited, fair use
        "price_id": "price_1S9d5HRGP4n024FurSVi6ys7",
        "is_default": False,
    },
}


def build_plan_catalog(settings_obj=None) -> List[Plan]:
    """Build the ordered plan catalog, applying configured price overrides."""
    cfg = settings_obj or settings
    catalog = []
    for plan_id, entry in DEFAULT_PLANS.items():
        override = getattr(cfg, f"STRIPE_PRICE_{plan_id.upper()}", None)
        catalog.append(
            Plan(
                plan_id=plan_id,
                name=entry["name"],
                monthly_credits=entry["monthly_credits"],
                price_id=override or entry["price_id"],
                is_default=entry["is_default"],
            )
        )
    return catalog


def build_price_table(catalog: List[Plan]) -> Dict[str, str]:
    return {plan.price_id: plan.plan_id for plan in catalog if plan.price_id}


PLAN_CATALOG: List[Plan] = build_plan_catalog()
PRICE_TO_PLAN: Dict[str, str] = build_price_table(PLAN_CATALOG)


def resolve_plan(price_id: Optional[str], price_table: Optional[Mapping[str, str]] = None) -> str:
    """Map a Stripe price id to a plan name.

    Unknown or missing ids resolve to the default plan; this never raises so a
    new or misconfigured price cannot break reconciliation.
    """
    table = PRICE_TO_PLAN if price_table is None else price_table
    if not isinstance(price_id, str):
        return DEFAULT_PLAN_ID
    return table.get(price_id, DEFAULT_PLAN_ID)


def list_plans() -> List[Plan]:
    return list(PLAN_CATALOG)


def get_plan(plan_id: str) -> Optional[Plan]:
    for plan in PLAN_CATALOG:
        if plan.plan_id == plan_id:
            return plan
    return None
