"""
Stripe webhook verification and event parsing.

The verifier checks the signature over the exact request bytes and turns the
event into one of a small set of typed variants; every event kind the
reconciliation flow does not handle becomes an IgnoredEvent.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import stripe

from auroai.core.errors import AppError, ConfigurationError
from auroai.features.billing.stripe_provider import stripe_field, stripe_id

logger = logging.getLogger("auroai")


ACTIVATION_EVENT_TYPES = frozenset({
    "checkout.session.completed",
    "invoice.paid",
    "invoice.payment_succeeded",
    "customer.subscription.created",
    "customer.subscription.updated",
})

DEACTIVATION_EVENT_TYPES = frozenset({
    "customer.subscription.deleted",
    "invoice.payment_failed",
})


class SignatureInvalid(AppError):
    code = "invalid_signature"
    status_code = 400


class WebhookConfigError(ConfigurationError):
    code = "webhook_config_error"


@dataclass(frozen=True)
class CheckoutCompleted:
    """checkout.session.completed; carries a session, not a subscription."""
    event_id: str
    event_type: str
    customer_id: Optional[str]
    mode: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionActivated:
    """Subscription or invoice event that may grant a paid plan."""
    event_id: str
    event_type: str
    customer_id: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionDeactivated:
    """Subscription deleted or invoice payment failed."""
    event_id: str
    event_type: str
    customer_id: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class IgnoredEvent:
    event_id: str
    event_type: str


BillingEvent = Union[CheckoutCompleted, SubscriptionActivated, SubscriptionDeactivated, IgnoredEvent]


def _invoice_subscription_id(invoice: Any) -> Optional[str]:
    subscription = stripe_field(invoice, "subscription")
    if subscription is not None:
        return stripe_id(subscription)
    # Newer API versions nest it under parent.subscription_details
    details = stripe_field(stripe_field(invoice, "parent"), "subscription_details")
    return stripe_id(stripe_field(details, "subscription"))


def parse_event(event: Any) -> BillingEvent:
    """Map a Stripe event (object or dict) onto the BillingEvent union."""
    event_id = stripe_field(event, "id", "")
    event_type = stripe_field(event, "type", "")
    obj = stripe_field(stripe_field(event, "data"), "object")

    if event_type == "checkout.session.completed":
        return CheckoutCompleted(
            event_id=event_id,
            event_type=event_type,
            customer_id=stripe_id(stripe_field(obj, "customer")),
            mode=stripe_field(obj, "mode"),
            subscription_id=stripe_id(stripe_field(obj, "subscription")),
        )

    if event_type in ACTIVATION_EVENT_TYPES or event_type in DEACTIVATION_EVENT_TYPES:
        if event_type.startswith("invoice."):
            subscription_id = _invoice_subscription_id(obj)
        else:
            subscription_id = stripe_field(obj, "id")
        variant = SubscriptionActivated if event_type in ACTIVATION_EVENT_TYPES else SubscriptionDeactivated
        return variant(
            event_id=event_id,
            event_type=event_type,
            customer_id=stripe_id(stripe_field(obj, "customer")),
            subscription_id=subscription_id,
        )

    return IgnoredEvent(event_id=event_id, event_type=event_type)


class WebhookVerifier:
    """Verifies Stripe-Signature headers against the endpoint secret."""

    def __init__(self, secret: Optional[str]):
        self.secret = secret

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> BillingEvent:
        """
        Verify the signature over ``raw_body`` and parse the event.

        ``raw_body`` must be the exact bytes received; a re-serialized JSON
        body will not match the signature.

        Raises:
            WebhookConfigError: no webhook secret configured
            SignatureInvalid: missing/mismatched signature or unparsable body
        """
        if not self.secret:
            raise WebhookConfigError("STRIPE_WEBHOOK_SECRET is not set")
        if not signature_header:
            raise SignatureInvalid("No Stripe signature found")

        try:
            event = stripe.Webhook.construct_event(raw_body, signature_header, self.secret)
        except ValueError as e:
            raise SignatureInvalid(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid(f"Invalid signature: {e}")

        parsed = parse_event(event)
        logger.info(
            "webhook.verified",
            extra={"event_id": parsed.event_id, "event_type": parsed.event_type},
        )
        return parsed
