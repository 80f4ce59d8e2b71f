"""Tests for the Stripe provider wrapper (StripeClient mocked, responses built as real Stripe objects)."""
from unittest.mock import MagicMock

import pytest
import stripe

from auroai.features.billing.provider import BillingConfigError, BillingProviderError
from auroai.features.billing.stripe_provider import (
    StripeProvider,
    stripe_field,
    stripe_id,
    to_provider_price,
    to_provider_subscription,
)

API_KEY = "sk_test_123"
MESO = "price_1S9d5HRGP4n024FunrJaW2Mr"


def listing(*items):
    return stripe.ListObject.construct_from({"object": "list", "data": list(items), "has_more": False}, API_KEY)


def subscription(**values):
    base = {"id": "sub_1", "object": "subscription", "customer": "cus_1", "status": "active", "metadata": {}}
    base.update(values)
    return stripe.Subscription.construct_from(base, API_KEY)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def provider(client):
    return StripeProvider(API_KEY, timeout_seconds=5.0, client=client)


@pytest.mark.parametrize("key", [None, "", "pk_test_123", "whsec_abc"])
def test_missing_or_malformed_key_rejected(key):
    with pytest.raises(BillingConfigError):
        StripeProvider(key)


def test_restricted_key_accepted(client):
    assert StripeProvider("rk_live_abc", client=client)


def test_find_customer_by_email(provider, client):
    client.v1.customers.list.return_value = listing(
        {"id": "cus_1", "object": "customer", "email": "a@example.com", "metadata": {}}
    )

    assert provider.find_customer_by_email("a@example.com") == "cus_1"
    client.v1.customers.list.assert_called_once_with(params={"email": "a@example.com", "limit": 1})


def test_find_customer_by_email_no_match(provider, client):
    client.v1.customers.list.return_value = listing()
    assert provider.find_customer_by_email("nobody@example.com") is None


def test_retrieve_customer_reads_email_and_name(provider, client):
    client.v1.customers.retrieve.return_value = stripe.Customer.construct_from(
        {"id": "cus_1", "object": "customer", "email": "a@example.com", "name": "Ana Souza", "metadata": {}},
        API_KEY,
    )

    customer = provider.retrieve_customer("cus_1")

    assert (customer.customer_id, customer.email, customer.name) == ("cus_1", "a@example.com", "Ana Souza")


def test_retrieve_customer_deleted(provider, client):
    client.v1.customers.retrieve.return_value = stripe.Customer.construct_from(
        {"id": "cus_1", "object": "customer", "deleted": True}, API_KEY
    )
    assert provider.retrieve_customer("cus_1") is None


def test_list_active_subscriptions_normalizes(provider, client):
    client.v1.subscriptions.list.return_value = listing(
        {
            "id": "sub_1",
            "object": "subscription",
            "customer": "cus_1",
            "status": "active",
            "metadata": {},
            "current_period_end": 1767225600,
            "items": {"object": "list", "data": [{"object": "subscription_item", "price": {"id": MESO, "object": "price"}}]},
        }
    )

    subs = provider.list_active_subscriptions("cus_1")

    client.v1.subscriptions.list.assert_called_once_with(
        params={"customer": "cus_1", "status": "active", "limit": 1}
    )
    assert len(subs) == 1
    assert subs[0].subscription_id == "sub_1"
    assert subs[0].price_id == MESO
    assert subs[0].current_period_end == 1767225600


def test_retrieve_subscription_with_metadata_and_item_period(provider, client):
    client.v1.subscriptions.retrieve.return_value = subscription(
        metadata={"user_id": "u1"},
        items={
            "object": "list",
            "data": [{"object": "subscription_item", "price": {"id": "price_x", "object": "price"}, "current_period_end": 1767225600}],
        },
    )

    sub = provider.retrieve_subscription("sub_1")

    assert sub.price_id == "price_x"
    assert sub.current_period_end == 1767225600
    assert sub.customer_id == "cus_1"


def test_expanded_customer_and_string_price():
    sub = to_provider_subscription(subscription(
        id="sub_2",
        customer={"id": "cus_9", "object": "customer"},
        items={"object": "list", "data": [{"object": "subscription_item", "price": "price_abc", "current_period_end": 1767225600}]},
    ))
    assert sub.customer_id == "cus_9"
    assert sub.price_id == "price_abc"
    assert sub.current_period_end == 1767225600


def test_subscription_without_items_keeps_none():
    sub = to_provider_subscription(subscription(id="sub_3"))
    assert sub.price_id is None
    assert sub.current_period_end is None


def test_price_normalized_from_stripe_object():
    price = to_provider_price(stripe.Price.construct_from(
        {"id": MESO, "object": "price", "active": True, "currency": "brl", "unit_amount": 4990, "product": {"id": "prod_1", "object": "product"}},
        API_KEY,
    ))
    assert (price.price_id, price.active, price.currency, price.unit_amount, price.product) == (MESO, True, "brl", 4990, "prod_1")


def test_stripe_errors_are_wrapped(provider, client):
    client.v1.prices.retrieve.side_effect = stripe.InvalidRequestError(
        "No such price: 'price_nope'", "price", code="resource_missing"
    )

    with pytest.raises(BillingProviderError) as exc_info:
        provider.retrieve_price("price_nope")

    assert exc_info.value.error_type == "InvalidRequestError"
    assert exc_info.value.provider_code == "resource_missing"
    assert "No such price" in exc_info.value.message
    assert exc_info.value.status_code == 502


def test_authentication_error_wrapped(provider, client):
    client.v1.customers.list.side_effect = stripe.AuthenticationError("Invalid API Key provided")

    with pytest.raises(BillingProviderError) as exc_info:
        provider.find_customer_by_email("a@example.com")
    assert exc_info.value.error_type == "AuthenticationError"


def checkout_session(session_id):
    return stripe.checkout.Session.construct_from(
        {"id": session_id, "object": "checkout.session", "url": f"https://checkout.stripe.com/c/pay/{session_id}"},
        API_KEY,
    )


def test_checkout_uses_existing_customer(provider, client):
    client.v1.checkout.sessions.create.return_value = checkout_session("cs_1")

    result = provider.create_checkout_session(
        customer_id="cus_1",
        email="a@example.com",
        price_id="price_abc",
        success_url="https://auroai.site/planos?payment=success",
        cancel_url="https://auroai.site/planos?payment=canceled",
        metadata={"user_id": "user_1", "price_id": "price_abc"},
    )

    params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
    assert params["customer"] == "cus_1"
    assert "customer_email" not in params
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_abc", "quantity": 1}]
    assert params["metadata"] == {"user_id": "user_1", "price_id": "price_abc"}
    assert result.session_id == "cs_1"
    assert result.url.startswith("https://checkout.stripe.com/")


def test_checkout_without_customer_sends_email(provider, client):
    client.v1.checkout.sessions.create.return_value = checkout_session("cs_2")

    provider.create_checkout_session(None, "new@example.com", "price_abc", "https://s", "https://c")

    params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
    assert params["customer_email"] == "new@example.com"
    assert "customer" not in params


def test_field_helpers_handle_objects_and_dicts():
    obj = stripe.StripeObject.construct_from({"id": "sub_1", "items": {"data": []}}, API_KEY)
    assert stripe_field(obj, "id") == "sub_1"
    assert stripe_field(stripe_field(obj, "items"), "data") == []
    assert stripe_field(obj, "missing", "default") == "default"
    assert stripe_field({"id": "sub_2"}, "id") == "sub_2"
    assert stripe_field(None, "id") is None
    assert stripe_id("cus_1") == "cus_1"
    assert stripe_id(stripe.StripeObject.construct_from({"id": "cus_2"}, API_KEY)) == "cus_2"
