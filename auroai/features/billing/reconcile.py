"""
Subscription reconciliation.

Reads the billing provider's current state for one user and writes the
resulting entitlement (plan, expiry, subscribed) to the user's profile.

Two entry points share the same write logic:
- reconcile(): pull path, used by authenticated status checks
- reconcile_from_webhook_event(): push path, used by Stripe webhooks

Neither path orders itself against the other; each write is derived entirely
from fresh provider state, so whichever finishes last wins and a later run
corrects any stale write.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Tuple

from auroai.core.logging import log_event
from auroai.features.billing.provider import BillingProvider, ProviderCustomer, ProviderSubscription
from auroai.features.billing.webhooks import (
    BillingEvent,
    CheckoutCompleted,
    IgnoredEvent,
    SubscriptionActivated,
    SubscriptionDeactivated,
)
from auroai.features.plans.service import DEFAULT_PLAN_ID, resolve_plan
from auroai.features.profiles.store import ProfileStore
from auroai.models.profile import SubscriptionProfile
from auroai.models.user import UserAccount


FALLBACK_PERIOD = timedelta(days=30)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_period_end(raw: Any) -> bool:
    return (
        not isinstance(raw, bool)
        and isinstance(raw, (int, float))
        and math.isfinite(raw)
        and raw > 0
    )


def resolve_period_end(raw: Any, now: datetime) -> datetime:
    """Convert a provider epoch-seconds period end to a UTC datetime.

    Missing, non-numeric, non-positive or out-of-range values fall back to
    ``now + 30 days`` instead of failing the reconciliation.
    """
    if not is_valid_period_end(raw):
        return now + FALLBACK_PERIOD
    try:
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return now + FALLBACK_PERIOD


class ReconciliationService:
    """Derives a user's plan from Stripe and persists it."""

    def __init__(
        self,
        provider: BillingProvider,
        store: ProfileStore,
        find_user_by_email: Callable[[str], Optional[UserAccount]],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.provider = provider
        self.store = store
        self.find_user_by_email = find_user_by_email
        self.clock = clock

    def reconcile(self, user_id: str, email: str) -> SubscriptionProfile:
        """Pull the current subscription state for ``email`` and store it on ``user_id``."""
        log_event("info", "reconcile.started", user_id=user_id)

        customer_id = self.provider.find_customer_by_email(email)
        if not customer_id:
            log_event("info", "reconcile.no_customer", user_id=user_id)
            return self._write_default(user_id)

        subscriptions = self.provider.list_active_subscriptions(customer_id)
        if not subscriptions:
            log_event("info", "reconcile.no_active_subscription", user_id=user_id, extra={"customer_id": customer_id})
            return self._write_default(user_id)

        if len(subscriptions) > 1:
            log_event(
                "warning",
                "reconcile.multiple_active_subscriptions",
                user_id=user_id,
                extra={"customer_id": customer_id, "count": len(subscriptions)},
            )

        plan, expires_at = self._entitlement(subscriptions[0], user_id=user_id)
        profile = self.store.write_subscription(user_id, plan, expires_at, subscribed=True)
        log_event(
            "info",
            "reconcile.subscription_active",
            user_id=user_id,
            extra={"plan": plan, "expires_at": expires_at.isoformat()},
        )
        return profile

    def reconcile_from_webhook_event(self, event: BillingEvent) -> None:
        """Apply a verified Stripe event. Errors propagate so Stripe redelivers."""
        if isinstance(event, IgnoredEvent):
            log_event("info", "webhook.unhandled_event", event_type=event.event_type, extra={"event_id": event.event_id})
            return

        subscription: Optional[ProviderSubscription] = None
        activation = not isinstance(event, SubscriptionDeactivated)

        if isinstance(event, CheckoutCompleted):
            if event.mode != "subscription" or not event.subscription_id:
                log_event("info", "webhook.skip_non_subscription_checkout", event_type=event.event_type, extra={"mode": event.mode})
                return
            subscription = self.provider.retrieve_subscription(event.subscription_id)
        elif isinstance(event, SubscriptionActivated):
            if not event.subscription_id:
                log_event("info", "webhook.skip_without_subscription", event_type=event.event_type, extra={"event_id": event.event_id})
                return
            # Re-read so redelivered or out-of-order events apply current state
            subscription = self.provider.retrieve_subscription(event.subscription_id)

        customer_id = event.customer_id or (subscription.customer_id if subscription else None)
        resolved = self._resolve_user(customer_id, event)
        if resolved is None:
            return
        user, customer = resolved

        self.store.ensure(user.user_id, full_name=customer.name)

        if activation and subscription is not None and subscription.status == "active":
            plan, expires_at = self._entitlement(subscription, user_id=user.user_id)
            self.store.write_subscription(user.user_id, plan, expires_at, subscribed=True)
            log_event(
                "info",
                "webhook.subscription_applied",
                user_id=user.user_id,
                event_type=event.event_type,
                extra={"plan": plan, "expires_at": expires_at.isoformat()},
            )
            return

        self._write_default(user.user_id)
        log_event(
            "info",
            "webhook.subscription_revoked",
            user_id=user.user_id,
            event_type=event.event_type,
            extra={"status": subscription.status if subscription else None},
        )

    def _resolve_user(
        self, customer_id: Optional[str], event: BillingEvent
    ) -> Optional[Tuple[UserAccount, ProviderCustomer]]:
        if not customer_id:
            log_event("warning", "webhook.missing_customer", event_type=event.event_type, extra={"event_id": event.event_id})
            return None

        customer = self.provider.retrieve_customer(customer_id)
        if customer is None or not customer.email:
            log_event("warning", "webhook.customer_without_email", event_type=event.event_type, extra={"customer_id": customer_id})
            return None

        user = self.find_user_by_email(customer.email)
        if user is None:
            log_event("warning", "webhook.user_not_found", event_type=event.event_type, extra={"customer_id": customer_id})
            return None
        return user, customer

    def _entitlement(self, subscription: ProviderSubscription, *, user_id: str) -> Tuple[str, datetime]:
        plan = resolve_plan(subscription.price_id)
        expires_at = resolve_period_end(subscription.current_period_end, self.clock())
        if not is_valid_period_end(subscription.current_period_end):
            log_event(
                "warning",
                "reconcile.invalid_period_end",
                user_id=user_id,
                extra={"subscription_id": subscription.subscription_id, "current_period_end": subscription.current_period_end},
            )
        return plan, expires_at

    def _write_default(self, user_id: str) -> SubscriptionProfile:
        return self.store.write_subscription(
            user_id,
            DEFAULT_PLAN_ID,
            self.clock() + FALLBACK_PERIOD,
            subscribed=False,
        )
