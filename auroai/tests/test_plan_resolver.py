"""Tests for plan catalog and price -> plan resolution."""
from types import SimpleNamespace

import pytest

from auroai.features.plans.service import (
    DEFAULT_PLAN_ID,
    build_plan_catalog,
    build_price_table,
    get_plan,
    list_plans,
    resolve_plan,
)


@pytest.mark.parametrize(
    "price_id,expected",
    [
        ("price_1S9d5HRGP4n024Fuvq3WeHCv", "micro"),
        ("price_1S9d5HRGP4n024FunrJaW2Mr", "meso"),
        ("price_1S9d5HRGP4n024FurSVi6ys7", "macro"),
        ("price_1S9eiNRGP4n024FuzUZw50LJ", "teste"),
    ],
)
def test_known_prices_resolve_to_plan(price_id, expected):
    assert resolve_plan(price_id) == expected


@pytest.mark.parametrize("price_id", [None, "", "price_unknown", 42, {"id": "price_x"}])
def test_unknown_or_missing_price_falls_back_to_default(price_id):
    assert resolve_plan(price_id) == DEFAULT_PLAN_ID == "teste"


def test_catalog_order_and_credits():
    plans = list_plans()
    assert [p.plan_id for p in plans] == ["teste", "micro", "meso", "macro"]
    assert [p.monthly_credits for p in plans] == [5, 25, 45, None]
    assert get_plan("macro").is_unlimited
    assert not get_plan("micro").is_unlimited
    assert get_plan("teste").is_default
    assert get_plan("platinum") is None


def test_price_overrides_from_settings():
    cfg = SimpleNamespace(
        STRIPE_PRICE_TESTE=None,
        STRIPE_PRICE_MICRO="price_microOverride",
        STRIPE_PRICE_MESO=None,
        STRIPE_PRICE_MACRO="",
    )
    catalog = build_plan_catalog(cfg)
    table = build_price_table(catalog)

    assert resolve_plan("price_microOverride", table) == "micro"
    # Old micro price is no longer mapped
    assert resolve_plan("price_1S9d5HRGP4n024Fuvq3WeHCv", table) == "teste"
    # Empty override keeps the built-in id
    assert resolve_plan("price_1S9d5HRGP4n024FurSVi6ys7", table) == "macro"
