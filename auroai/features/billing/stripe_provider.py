"""
Stripe billing provider implementation.

Implements the BillingProvider protocol on top of a per-instance
``stripe.StripeClient``; credentials and timeouts are injected at
construction instead of being read from the global ``stripe.api_key``.
"""
import logging
from typing import Any, Dict, List, Optional

import stripe

from auroai.features.billing.provider import (
    BillingConfigError,
    BillingProviderError,
    CheckoutSessionResult,
    ProviderCustomer,
    ProviderPrice,
    ProviderSubscription,
)

logger = logging.getLogger("auroai")

DEFAULT_TIMEOUT_SECONDS = 10.0


def stripe_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a key from a StripeObject or plain dict without attribute clashes (e.g. ``items``)."""
    if obj is None:
        return default
    try:
        value = obj[name]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


def stripe_id(value: Any) -> Optional[str]:
    """Expandable fields come back either as an id string or as the full object."""
    if value is None or isinstance(value, str):
        return value
    return stripe_field(value, "id")


def to_provider_subscription(obj: Any) -> ProviderSubscription:
    """Normalize a Stripe subscription (object or dict)."""
    items = stripe_field(stripe_field(obj, "items"), "data") or []
    first_item = items[0] if items else None
    period_end = stripe_field(obj, "current_period_end")
    if period_end is None and first_item is not None:
        # Newer API versions report the billing period per subscription item
        period_end = stripe_field(first_item, "current_period_end")
    return ProviderSubscription(
        subscription_id=stripe_field(obj, "id"),
        customer_id=stripe_id(stripe_field(obj, "customer")),
        status=stripe_field(obj, "status"),
        price_id=stripe_id(stripe_field(first_item, "price")),
        current_period_end=period_end,
    )


def to_provider_price(obj: Any) -> ProviderPrice:
    return ProviderPrice(
        price_id=stripe_field(obj, "id"),
        active=bool(stripe_field(obj, "active", False)),
        currency=stripe_field(obj, "currency"),
        unit_amount=stripe_field(obj, "unit_amount"),
        product=stripe_id(stripe_field(obj, "product")),
    )


def _wrap_stripe_error(action: str, exc: "stripe.StripeError") -> BillingProviderError:
    error_type = type(exc).__name__
    provider_code = getattr(exc, "code", None)
    message = getattr(exc, "user_message", None) or str(exc) or error_type
    logger.warning(
        "stripe.call_failed",
        extra={"action": action, "error_type": error_type, "provider_code": provider_code},
    )
    return BillingProviderError(
        f"Stripe {action} failed: {message}",
        provider_code=provider_code,
        error_type=error_type,
    )


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(
        self,
        secret_key: Optional[str],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional["stripe.StripeClient"] = None,
    ):
        """
        Initialize Stripe provider.

        Args:
            secret_key: Stripe secret (sk_...) or restricted (rk_...) key
            timeout_seconds: Upper bound for every Stripe HTTP call
            client: Pre-built StripeClient (tests)
        """
        if not secret_key:
            raise BillingConfigError("STRIPE_SECRET_KEY is not set")
        if not secret_key.startswith(("sk_", "rk_")):
            raise BillingConfigError("Invalid Stripe secret key format")

        self.timeout_seconds = timeout_seconds
        self._client = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.HTTPXClient(timeout=timeout_seconds, allow_sync_methods=True),
            max_network_retries=0,
        )

    def find_customer_by_email(self, email: str) -> Optional[str]:
        try:
            customers = self._client.v1.customers.list(params={"email": email, "limit": 1})
        except stripe.StripeError as e:
            raise _wrap_stripe_error("customer lookup", e)
        data = stripe_field(customers, "data") or []
        if not data:
            return None
        return stripe_field(data[0], "id")

    def retrieve_customer(self, customer_id: str) -> Optional[ProviderCustomer]:
        try:
            customer = self._client.v1.customers.retrieve(customer_id)
        except stripe.StripeError as e:
            raise _wrap_stripe_error("customer retrieval", e)
        if stripe_field(customer, "deleted", False):
            return None
        return ProviderCustomer(
            customer_id=stripe_field(customer, "id", customer_id),
            email=stripe_field(customer, "email"),
            name=stripe_field(customer, "name"),
        )

    def list_active_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        try:
            subscriptions = self._client.v1.subscriptions.list(
                params={"customer": customer_id, "status": "active", "limit": 1}
            )
        except stripe.StripeError as e:
            raise _wrap_stripe_error("subscription listing", e)
        return [to_provider_subscription(sub) for sub in stripe_field(subscriptions, "data") or []]

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        try:
            subscription = self._client.v1.subscriptions.retrieve(subscription_id)
        except stripe.StripeError as e:
            raise _wrap_stripe_error("subscription retrieval", e)
        return to_provider_subscription(subscription)

    def retrieve_price(self, price_id: str) -> ProviderPrice:
        try:
            price = self._client.v1.prices.retrieve(price_id)
        except stripe.StripeError as e:
            raise _wrap_stripe_error("price retrieval", e)
        return to_provider_price(price)

    def list_prices(self, limit: int = 1) -> List[ProviderPrice]:
        try:
            prices = self._client.v1.prices.list(params={"limit": limit})
        except stripe.StripeError as e:
            raise _wrap_stripe_error("price listing", e)
        return [to_provider_price(price) for price in stripe_field(prices, "data") or []]

    def create_checkout_session(
        self,
        customer_id: Optional[str],
        email: Optional[str],
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSessionResult:
        """Create Stripe checkout session."""
        params: Dict[str, Any] = {
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata or {},
        }
        if customer_id:
            params["customer"] = customer_id
        elif email:
            params["customer_email"] = email

        try:
            session = self._client.v1.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            raise _wrap_stripe_error("checkout session creation", e)
        return CheckoutSessionResult(session_id=stripe_field(session, "id"), url=stripe_field(session, "url"))
