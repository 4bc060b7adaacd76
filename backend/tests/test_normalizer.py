"""
Provider payload validation and normalization
"""
from decimal import Decimal

import pytest

from conftest import doordash_payload, uber_payload
from ordersync.core.exceptions import ValidationError
from ordersync.models import OrderStatus, Provider
from ordersync.schemas.providers import parse_provider_payload
from ordersync.services.normalizer import PayloadNormalizer, from_minor_units

normalizer = PayloadNormalizer()


def test_minor_units_to_major():
    """Cents become two-decimal amounts"""
    assert from_minor_units(1599) == Decimal("15.99")
    assert from_minor_units(320) == Decimal("3.20")
    assert from_minor_units(0) == Decimal("0.00")
    assert from_minor_units(None) == Decimal("0.00")


def test_uber_eats_order():
    """Prices and totals of an Uber Eats order are divided by 100"""
    draft = normalizer.normalize_raw(Provider.UBER_EATS, uber_payload())

    assert draft.source == "Uber Eats"
    assert draft.external_order_id == "O1"
    assert draft.external_store_id == "S1"
    assert draft.customer_name == "Ana"
    assert draft.customer_phone == "+15550001111"
    assert draft.notes == "Uber #A1B2"
    assert len(draft.items) == 1
    assert draft.items[0].name == "Burger"
    assert draft.items[0].qty == 2
    assert draft.items[0].price == Decimal("15.99")
    assert draft.totals.subtotal == Decimal("31.98")
    assert draft.totals.tax == Decimal("3.20")
    assert draft.totals.total == Decimal("35.18")
    assert draft.totals.currency == "CAD"
    assert draft.description == "2x Burger"
    assert draft.terminal_status is None


def test_uber_eats_defaults():
    """Missing eater and display id fall back to the guest defaults"""
    draft = normalizer.normalize_raw(Provider.UBER_EATS, {"store_id": "S1", "order_id": "O9"})

    assert draft.customer_name == "Uber Guest"
    assert draft.customer_phone is None
    assert draft.notes is None
    assert draft.items == []
    assert draft.totals.total == Decimal("0.00")
    assert draft.totals.currency == "CAD"


def test_uber_eats_numeric_ids_are_strings():
    """Numeric ids are correlated as strings"""
    draft = normalizer.normalize_raw(Provider.UBER_EATS, uber_payload(store_id=42, order_id=1001))
    assert draft.external_store_id == "42"
    assert draft.external_order_id == "1001"


@pytest.mark.parametrize("fields,expected", [
    ({"current_state": "CANCELED"}, OrderStatus.CANCELLED),
    ({"current_state": "denied"}, OrderStatus.CANCELLED),
    ({"event_type": "orders.cancel"}, OrderStatus.CANCELLED),
    ({"current_state": "DELIVERED"}, OrderStatus.COMPLETED),
    ({"current_state": "ACCEPTED"}, None),
])
def test_uber_eats_terminal_states(fields, expected):
    """Cancellation and completion vocabulary of Uber Eats"""
    draft = normalizer.normalize_raw(Provider.UBER_EATS, uber_payload(**fields))
    assert draft.terminal_status == expected


def test_doordash_order():
    """DoorDash names, options and computed subtotal"""
    draft = normalizer.normalize_raw(Provider.DOORDASH, doordash_payload())

    assert draft.source == "DoorDash"
    assert draft.external_order_id == "DD-100"
    assert draft.external_store_id == "D1"
    assert draft.customer_name == "Sam Lee"
    assert draft.customer_phone == "+15550002222"
    assert draft.notes == "Leave at door"
    assert draft.items[0].notes == "Extra salsa, No onion"
    assert draft.items[0].price == Decimal("4.50")
    assert draft.items[1].notes is None
    # 3 * 450 + 250
    assert draft.totals.subtotal == Decimal("16.00")
    assert draft.totals.tax == Decimal("2.08")
    assert draft.totals.total == Decimal("18.08")
    assert draft.description == "3x Taco, 1x Soda"


def test_doordash_explicit_subtotal_wins():
    """A subtotal sent by DoorDash is used as is"""
    draft = normalizer.normalize_raw(Provider.DOORDASH, doordash_payload(subtotal=1500, currency="USD"))
    assert draft.totals.subtotal == Decimal("15.00")
    assert draft.totals.currency == "USD"


def test_doordash_cancelled():
    """DoorDash CANCELLED is a terminal state"""
    draft = normalizer.normalize_raw(Provider.DOORDASH, doordash_payload(status="CANCELLED"))
    assert draft.terminal_status == OrderStatus.CANCELLED


@pytest.mark.parametrize("provider,data", [
    (Provider.UBER_EATS, {"order_id": "O1"}),
    (Provider.UBER_EATS, {"store_id": "S1"}),
    (Provider.UBER_EATS, {"store_id": "  ", "order_id": "O1"}),
    (Provider.UBER_EATS, {"store_id": "S1", "order_id": "   "}),
    (Provider.DOORDASH, {"id": "DD-1"}),
    (Provider.DOORDASH, {"merchant_id": "D1", "id": None}),
    (Provider.DOORDASH, {"merchant_id": " ", "id": "DD-1"}),
    (Provider.DOORDASH, {"merchant_id": "D1", "id": "\t"}),
])
def test_missing_correlation_ids(provider, data):
    """Payloads without store or order id do not parse"""
    with pytest.raises(ValidationError):
        parse_provider_payload(provider, data)


def test_non_object_body():
    """A JSON array or scalar is not a webhook payload"""
    with pytest.raises(ValidationError):
        parse_provider_payload(Provider.UBER_EATS, ["S1", "O1"])


def test_unknown_fields_are_kept():
    """Fields the models do not know about survive in the parsed payload"""
    payload = parse_provider_payload(Provider.UBER_EATS, uber_payload(brand="Burgers & Co"))
    assert payload.model_extra["brand"] == "Burgers & Co"
