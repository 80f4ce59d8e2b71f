"""
Stripe connectivity diagnostics.

Operator-facing check that the configured key works and every paid plan's
price id exists at Stripe. Never exposes the key itself.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from auroai.core.logging import log_event
from auroai.features.billing.provider import BillingProvider, BillingProviderError
from auroai.models.plan import Plan


def check_secret_key(secret_key: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return a failure report for a missing or malformed key, else None."""
    if not secret_key:
        log_event("error", "diagnostics.key_missing")
        return {"success": False, "error": "Stripe secret key not configured", "step": "key_missing"}
    if not secret_key.startswith(("sk_", "rk_")):
        log_event("error", "diagnostics.key_format", extra={"key_prefix": secret_key[:3]})
        return {"success": False, "error": "Invalid Stripe secret key format", "step": "key_format"}
    return None


def _check_price(provider: BillingProvider, plan: Plan) -> Dict[str, Any]:
    try:
        price = provider.retrieve_price(plan.price_id)
    except BillingProviderError as e:
        log_event("warning", "diagnostics.price_failed", extra={"plan": plan.plan_id, "price_id": plan.price_id})
        return {
            "plan": plan.plan_id,
            "priceId": plan.price_id,
            "valid": False,
            "error": e.message,
            "code": e.provider_code,
        }
    return {
        "plan": plan.plan_id,
        "priceId": price.price_id,
        "valid": True,
        "active": price.active,
        "currency": price.currency,
        "unitAmount": price.unit_amount,
        "product": price.product,
    }


def run_diagnostics(provider: BillingProvider, plans: Iterable[Plan]) -> Dict[str, Any]:
    """
    Probe the Stripe API and each plan price.

    An API-level failure short-circuits with ``success=False`` and
    ``step="stripe_api_test"``; individual price failures are reported per
    price without failing the whole run.
    """
    log_event("info", "diagnostics.started")
    try:
        provider.list_prices(limit=1)
    except BillingProviderError as e:
        return {
            "success": False,
            "error": e.message,
            "type": e.error_type,
            "code": e.provider_code,
            "step": "stripe_api_test",
        }

    price_tests: List[Dict[str, Any]] = [
        _check_price(provider, plan) for plan in plans if plan.price_id and not plan.is_default
    ]
    log_event(
        "info",
        "diagnostics.completed",
        extra={"prices_checked": len(price_tests), "invalid": sum(1 for p in price_tests if not p["valid"])},
    )
    return {
        "success": True,
        "apiConnected": True,
        "keyFormat": "valid",
        "priceTests": price_tests,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
