# auroai/conftest.py
import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone

import pytest

# Settings are read at import time, so the test environment goes in first
os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = "sqlite://"
os.environ["SKIP_ENV_VALIDATION"] = "1"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["ADMIN_KEY"] = "test-admin-key"
os.environ["AUTOMATION_CONNECT_URL"] = "https://automation.test/webhook/connect"
os.environ["AUTOMATION_VERIFY_URL"] = "https://automation.test/webhook/verify"
os.environ["AUTOMATION_DISCONNECT_URL"] = "https://automation.test/webhook/disconnect"

import jwt  # noqa: E402

from auroai.features.billing.provider import (  # noqa: E402
    BillingProviderError,
    CheckoutSessionResult,
    ProviderCustomer,
    ProviderPrice,
    ProviderSubscription,
)

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
JWT_SECRET = os.environ["AUTH_JWT_SECRET"]
FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeBillingProvider:
    """In-memory BillingProvider; records every call in ``calls``."""

    def __init__(self):
        self.customers = {}  # email -> customer id
        self.customer_records = {}  # customer id -> ProviderCustomer
        self.subscriptions = {}  # subscription id -> ProviderSubscription
        self.prices = {}  # price id -> ProviderPrice
        self.sessions = []
        self.calls = []
        self.fail_on = {}  # method name -> exception

    def add_customer(self, customer_id, email, name=None):
        self.customers[email] = customer_id
        self.customer_records[customer_id] = ProviderCustomer(customer_id=customer_id, email=email, name=name)

    def add_subscription(self, subscription_id, customer_id, price_id, status="active", current_period_end=None):
        if current_period_end is None:
            current_period_end = int((FIXED_NOW + timedelta(days=30)).timestamp())
        self.subscriptions[subscription_id] = ProviderSubscription(
            subscription_id=subscription_id,
            customer_id=customer_id,
            status=status,
            price_id=price_id,
            current_period_end=current_period_end,
        )

    def add_price(self, price_id, active=True):
        self.prices[price_id] = ProviderPrice(price_id=price_id, active=active, currency="brl", unit_amount=2990)

    def _record(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def find_customer_by_email(self, email):
        self._record("find_customer_by_email")
        return self.customers.get(email)

    def retrieve_customer(self, customer_id):
        self._record("retrieve_customer")
        return self.customer_records.get(customer_id)

    def list_active_subscriptions(self, customer_id):
        self._record("list_active_subscriptions")
        return [
            sub for sub in self.subscriptions.values()
            if sub.customer_id == customer_id and sub.status == "active"
        ]

    def retrieve_subscription(self, subscription_id):
        self._record("retrieve_subscription")
        if subscription_id not in self.subscriptions:
            raise BillingProviderError(
                f"No such subscription: '{subscription_id}'",
                provider_code="resource_missing",
                error_type="InvalidRequestError",
            )
        return self.subscriptions[subscription_id]

    def retrieve_price(self, price_id):
        self._record("retrieve_price")
        if price_id not in self.prices:
            raise BillingProviderError(
                f"No such price: '{price_id}'",
                provider_code="resource_missing",
                error_type="InvalidRequestError",
            )
        return self.prices[price_id]

    def list_prices(self, limit=1):
        self._record("list_prices")
        return list(self.prices.values())[:limit]

    def create_checkout_session(self, customer_id, email, price_id, success_url, cancel_url, metadata=None):
        self._record("create_checkout_session")
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({
            "customer_id": customer_id,
            "email": email,
            "price_id": price_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        })
        return CheckoutSessionResult(session_id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")


def sign_webhook(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def webhook_body(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode()


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Fresh tables for every test (in-memory SQLite)."""
    from auroai.core.database import reset_database
    from auroai.features.billing.service import reset_billing_services

    reset_database()
    reset_billing_services()
    yield


@pytest.fixture
def fake_provider():
    return FakeBillingProvider()


@pytest.fixture
def make_token():
    """Factory for identity-provider access tokens."""
    def _make(user_id="user_1", email="a@example.com", secret=JWT_SECRET, expires_in=3600, **claims):
        payload = {
            "sub": user_id,
            "aud": "authenticated",
            "exp": int(time.time()) + expires_in,
            **claims,
        }
        if email is not None:
            payload["email"] = email
        return jwt.encode(payload, secret, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id="user_1", email="a@example.com"):
        return {"Authorization": f"Bearer {make_token(user_id=user_id, email=email)}"}
    return _headers


@pytest.fixture
def signed_webhook():
    """Returns (body, headers) for a signed Stripe event."""
    def _build(event_type, obj, event_id="evt_test_1", secret=WEBHOOK_SECRET, timestamp=None):
        body = webhook_body(event_type, obj, event_id=event_id)
        signature = sign_webhook(body, secret=secret, timestamp=timestamp)
        return body, {"Stripe-Signature": signature, "Content-Type": "application/json"}
    return _build


@pytest.fixture
def fixed_now():
    return FIXED_NOW
