"""
Billing service wiring.

Builds the Stripe-backed collaborators from settings once per process:
- StripeProvider (secret key + timeout)
- ReconciliationService (provider + profile store + identity lookup)
- CheckoutInitiator (provider + return URLs)
- WebhookVerifier (endpoint secret)

Routes depend on the get_* functions so tests can override them.
"""
from functools import lru_cache

from auroai.core.config import settings
from auroai.features.billing.checkout import CheckoutInitiator
from auroai.features.billing.provider import BillingConfigError, BillingProvider
from auroai.features.billing.reconcile import ReconciliationService
from auroai.features.billing.stripe_provider import StripeProvider
from auroai.features.billing.webhooks import WebhookVerifier
from auroai.features.profiles.store import ProfileStore
from auroai.features.users.service import find_user_by_email


def billing_enabled() -> bool:
    """Check if billing is enabled (Stripe configured)."""
    return bool(settings.STRIPE_SECRET_KEY)


@lru_cache(maxsize=1)
def get_provider() -> BillingProvider:
    """
    Build the Stripe provider from settings.

    Raises:
        BillingConfigError: STRIPE_SECRET_KEY missing or malformed
    """
    if not billing_enabled():
        raise BillingConfigError("STRIPE_SECRET_KEY is not set")
    return StripeProvider(
        settings.STRIPE_SECRET_KEY,
        timeout_seconds=settings.STRIPE_TIMEOUT_SECONDS,
    )


def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(
        provider=get_provider(),
        store=ProfileStore(),
        find_user_by_email=find_user_by_email,
    )


def get_checkout_initiator() -> CheckoutInitiator:
    return CheckoutInitiator(
        provider=get_provider(),
        app_base_url=settings.APP_BASE_URL,
        return_path=settings.CHECKOUT_RETURN_PATH,
    )


def get_webhook_verifier() -> WebhookVerifier:
    return WebhookVerifier(settings.STRIPE_WEBHOOK_SECRET)


def reset_billing_services() -> None:
    """Drop the cached provider (tests, settings reload)."""
    get_provider.cache_clear()
