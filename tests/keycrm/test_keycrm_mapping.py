"""
Tests for the order event -> KeyCRM request builders.
"""
import pytest

from app.keycrm.mapping import (
    LEAD_DISCOUNT_FIELD,
    ORDER_DISCOUNT_FIELD,
    build_manager_comment,
    build_order_request,
    build_payment_request,
    build_pipeline_card_request,
    build_status_update,
    resolve_payment_method,
)
from app.models import OrderEvent


def make_order(**overrides):
    data = {
        "externalOrderId": "5001",
        "externalCustomerId": "77",
        "orderStatus": 1,
        "paymentStatus": 0,
        "totalCost": 750,
        "currency": "UAH",
        "date": 1_700_000_000_000,  # 2023-11-14 22:13:20 UTC
        "email": "buyer@example.com",
        "phone": "067 123 45 67",
        "firstName": "Olena",
        "lastName": "Koval",
        "paymentMethod": "LiqPay",
        "deliveryMethod": "Нова Пошта",
        "deliveryAddress": "Київ (Київська обл.), Відділення №5",
        "additionalInfo": "Call before delivery",
        "items": [
            {"externalItemId": 11, "name": "Mug", "cost": 250, "quantity": 2, "category": "Kitchen"},
            {"externalItemId": 12, "name": "Plate", "cost": 250, "quantity": 1},
        ],
    }
    data.update(overrides)
    return OrderEvent.from_dict(data)


class TestBuildOrderRequest:
    def test_basic_fields(self):
        body = build_order_request(make_order(), source_id=2).to_dict()

        assert body["source_id"] == 2
        assert body["source_uuid"] == "5001"
        assert body["ordered_at"] == "2023-11-14 22:13:20"
        assert body["buyer_comment"] == "Call before delivery"
        assert body["buyer"] == {
            "full_name": "Olena Koval",
            "email": "buyer@example.com",
            "phone": "+380671234567",
        }

    def test_products(self):
        products = build_order_request(make_order(), source_id=2).to_dict()["products"]

        assert products[0] == {
            "sku": "11",
            "name": "Mug",
            "price": 250,
            "quantity": 2,
            "properties": [{"name": "Категорія", "value": "Kitchen"}],
        }
        assert "properties" not in products[1]

    def test_shipping_from_address(self):
        shipping = build_order_request(make_order(), source_id=2).to_dict()["shipping"]

        assert shipping["shipping_service"] == "Нова Пошта"
        assert shipping["shipping_address_city"] == "Київ"
        assert shipping["shipping_address_region"] == "Київська обл."
        assert shipping["shipping_receive_point"] == "Відділення №5"
        assert shipping["shipping_address_country"] == "Ukraine"

    def test_no_address_means_no_shipping(self):
        body = build_order_request(make_order(deliveryAddress=None), source_id=2).to_dict()
        assert "shipping" not in body

    @pytest.mark.parametrize("payment,status", [(0, "not_paid"), (1, "paid")])
    def test_embedded_payment_status(self, payment, status):
        body = build_order_request(make_order(paymentStatus=payment), source_id=2).to_dict()

        assert body["payments"][0]["status"] == status
        assert body["payments"][0]["amount"] == 750

    def test_discount_goes_to_custom_field(self):
        body = build_order_request(make_order(discount=50), source_id=2).to_dict()

        assert body["discount_amount"] == 50
        assert body["custom_fields"] == [{"uuid": ORDER_DISCOUNT_FIELD, "value": 50}]

    def test_no_discount(self):
        body = build_order_request(make_order(discount=0), source_id=2).to_dict()

        assert "discount_amount" not in body
        assert body["custom_fields"] == []


class TestBuildPipelineCardRequest:
    def test_card_fields(self):
        body = build_pipeline_card_request(make_order(orderStatus=0, discount=20), pipeline_id=1, source_id=2).to_dict()

        assert body["title"] == "Замовлення #5001"
        assert body["pipeline_id"] == 1
        assert body["source_id"] == 2
        assert body["communicate_at"] == "2023-11-14T22:13:20Z"
        assert body["contact"]["phone"] == "+380671234567"
        assert body["custom_fields"] == [{"uuid": LEAD_DISCOUNT_FIELD, "value": 20}]
        assert len(body["products"]) == 2

    def test_manager_comment_summarizes_order(self):
        comment = build_manager_comment(make_order(orderStatus=0))

        assert comment.startswith("ЗАМОВЛЕННЯ #5001")
        assert "Клієнт: Olena Koval" in comment
        assert "Сума: 750 UAH" in comment
        assert "1. Mug (2 шт. × 250 UAH)" in comment
        assert "Коментар: Call before delivery" in comment
        # 22:13:20 UTC is 00:13:20 next day in Kyiv (UTC+2 in November)
        assert "Час замовлення: 15.11.2023, 00:13:20" in comment
        assert "Статус оплати: Не оплачено" in comment
        assert "" not in comment.split("\n")


class TestPayments:
    @pytest.mark.parametrize("label,expected", [
        ("LiqPay", (4, None)),
        ("Готівка", (1, None)),
        ("Bitcoin", (None, "Bitcoin")),
        (None, (None, None)),
        ("", (None, None)),
    ])
    def test_resolve_payment_method(self, label, expected):
        assert resolve_payment_method(label) == expected

    def test_payment_request_for_known_method(self):
        body = build_payment_request(make_order(paymentStatus=1)).to_dict()
        assert body == {"amount": 750, "payment_method_id": 4}

    def test_payment_request_for_unknown_method(self):
        body = build_payment_request(make_order(paymentStatus=1, paymentMethod="Bitcoin")).to_dict()
        assert body == {"amount": 750, "payment_method": "Bitcoin"}


def test_build_status_update():
    assert build_status_update(9).to_dict() == {"status_id": 9}
