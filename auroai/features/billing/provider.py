"""
Billing provider protocol.

Defines the interface the reconciliation and checkout flows need from the
billing provider (Stripe). Keeps Stripe types out of business logic so the
services can be exercised with plain fakes.
"""
from typing import Protocol, Dict, Any, List, Optional
from dataclasses import dataclass

from auroai.core.errors import ConfigurationError, UpstreamError


@dataclass
class ProviderSubscription:
    """Normalized view of a provider subscription."""
    subscription_id: str
    customer_id: Optional[str]
    status: Optional[str]  # active, canceled, past_due, etc.
    price_id: Optional[str]  # price of the first line item
    current_period_end: Any  # raw provider value, validated by the caller


@dataclass
class ProviderCustomer:
    customer_id: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ProviderPrice:
    price_id: str
    active: bool
    currency: Optional[str] = None
    unit_amount: Optional[int] = None
    product: Optional[str] = None


@dataclass
class CheckoutSessionResult:
    session_id: str
    url: str


class BillingProvider(Protocol):
    """
    Protocol for billing providers.

    Implementations must:
    - Return None (not raise) when no customer matches an email
    - Raise BillingProviderError for any transport/auth/API failure
    - Never retry internally; callers own the retry policy
    """

    def find_customer_by_email(self, email: str) -> Optional[str]:
        """Return the provider customer id for an email, or None."""
        ...

    def retrieve_customer(self, customer_id: str) -> Optional[ProviderCustomer]:
        """Return the customer, or None when it was deleted."""
        ...

    def list_active_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        """List active subscriptions; index 0 is authoritative."""
        ...

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        ...

    def retrieve_price(self, price_id: str) -> ProviderPrice:
        ...

    def list_prices(self, limit: int = 1) -> List[ProviderPrice]:
        ...

    def create_checkout_session(
        self,
        customer_id: Optional[str],
        email: Optional[str],
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSessionResult:
        """
        Create a subscription checkout session.

        When customer_id is None the provider creates the customer from email.
        """
        ...


class BillingProviderError(UpstreamError):
    """Provider-side failure, carrying the provider's error code and type."""
    code = "billing_provider_error"

    def __init__(self, message: str, *, provider_code: Optional[str] = None, error_type: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.provider_code = provider_code
        self.error_type = error_type


class BillingConfigError(ConfigurationError):
    """Stripe secret key missing or malformed."""
    code = "billing_config_error"
