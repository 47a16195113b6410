"""
Tests for the KeyCRM field helpers: phone normalization, address parsing
and site-order checks.
"""
import pytest

from app.keycrm.utils import (
    calculate_order_total,
    format_currency,
    format_phone_number,
    parse_shipping_address,
    validate_site_order,
)
from app.models import OrderEvent


@pytest.mark.parametrize("raw,expected", [
    ("0671234567", "+380671234567"),
    ("067 123 45 67", "+380671234567"),
    ("(067) 123-45-67", "+380671234567"),
    ("380671234567", "+380671234567"),
    ("+380671234567", "+380671234567"),
    ("80671234567", "+380671234567"),
    ("12345", "12345"),
    ("", ""),
    (None, None),
])
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


class TestParseShippingAddress:
    def test_city_region_and_branch(self):
        shipping = parse_shipping_address("Київ (Київська обл.), Відділення №5", "Нова пошта")

        assert shipping.city == "Київ"
        assert shipping.region == "Київська обл."
        assert shipping.receive_point == "Відділення №5"
        assert shipping.service == "Нова Пошта"
        assert shipping.secondary_line is None

    def test_zip_and_secondary_line(self):
        shipping = parse_shipping_address("Львів, вул. Городоцька 10, кв. 3, 79000")

        assert shipping.city == "Львів"
        assert shipping.zip == "79000"
        assert shipping.secondary_line == "вул. Городоцька 10, кв. 3"
        assert shipping.region is None

    def test_repeated_city_segment_is_dropped(self):
        shipping = parse_shipping_address("Одеса, Одеса, ТРЦ Рів'єра")

        assert shipping.receive_point == "ТРЦ Рів'єра"
        assert shipping.secondary_line is None

    def test_unknown_carrier_passes_through(self):
        assert parse_shipping_address("Київ", "Meest").service == "Meest"
        assert parse_shipping_address("Київ", "Укрпошта експрес").service == "Укрпошта"

    def test_empty_address(self):
        assert parse_shipping_address("") is None
        assert parse_shipping_address(None) is None


def make_order(**overrides):
    data = {
        "externalOrderId": "1",
        "orderStatus": 1,
        "totalCost": 300,
        "email": "buyer@example.com",
        "items": [
            {"name": "Mug", "cost": 100, "quantity": 2},
            {"name": "Plate", "cost": 100, "quantity": 1},
        ],
    }
    data.update(overrides)
    return OrderEvent.from_dict(data)


class TestValidateSiteOrder:
    def test_valid_order(self):
        assert validate_site_order(make_order()) == (True, [])

    def test_collects_every_problem(self):
        order = make_order(email=None, phone=None, totalCost=0, items=[{"name": "", "cost": 0, "quantity": 0}])

        is_valid, errors = validate_site_order(order)

        assert not is_valid
        assert "Missing customer email or phone" in errors
        assert "Invalid order total" in errors
        assert "Item #1 has no name" in errors
        assert "Item #1 has invalid price" in errors
        assert "Item #1 has invalid quantity" in errors

    def test_phone_alone_is_enough_contact(self):
        assert validate_site_order(make_order(email=None, phone="0671234567"))[0]

    def test_no_items(self):
        is_valid, errors = validate_site_order(make_order(items=[]))
        assert not is_valid
        assert errors == ["Order has no items"]

    def test_total_mismatch_is_reported(self):
        is_valid, errors = validate_site_order(make_order(totalCost=1250.5))

        assert not is_valid
        assert errors == ["Order total 1 250,50 UAH does not match items total 300 UAH"]

    def test_total_after_discount_matches(self):
        assert validate_site_order(make_order(totalCost=270, discount=30)) == (True, [])


def test_calculate_order_total():
    assert calculate_order_total(make_order()) == 300


@pytest.mark.parametrize("amount,currency,expected", [
    (1250.5, "UAH", "1 250,50 UAH"),
    (500, None, "500 UAH"),
    (12, "USD", "12 USD"),
])
def test_format_currency(amount, currency, expected):
    assert format_currency(amount, currency) == expected
