"""
Tests for OrderEvent parsing and serialization.
"""
import json

import pytest

from app.models import InvalidOrderEvent, OrderEvent, OrderStage, PaymentStage


def site_order(**overrides):
    data = {
        "externalOrderId": 1001,
        "externalCustomerId": 55,
        "orderStatus": "1",
        "paymentStatus": 1,
        "totalCost": 420,
        "firstName": "Olena",
        "lastName": None,
        "items": [{"externalItemId": 1, "name": "Mug", "cost": 420, "quantity": 1, "imageUrl": "https://x/y.png"}],
    }
    data.update(overrides)
    return data


class TestFromDict:
    def test_parses_and_normalizes_ids(self):
        order = OrderEvent.from_dict(site_order())

        assert order.external_order_id == "1001"
        assert order.external_customer_id == "55"
        assert order.stage is OrderStage.NEW_ORDER
        assert order.payment_stage is PaymentStage.PAID
        assert order.is_paid
        assert order.full_name == "Olena"
        assert order.items[0].image_url == "https://x/y.png"

    def test_missing_payment_status_means_unpaid(self):
        data = site_order()
        del data["paymentStatus"]

        assert OrderEvent.from_dict(data).payment_stage is PaymentStage.UNPAID

    @pytest.mark.parametrize("overrides", [
        {"externalOrderId": None},
        {"externalOrderId": ""},
        {"orderStatus": None},
        {"orderStatus": 4},
        {"orderStatus": "shipped"},
        {"paymentStatus": 3},
        {"items": "Mug"},
        {"items": ["Mug"]},
    ])
    def test_rejects_invalid_orders(self, overrides):
        with pytest.raises(InvalidOrderEvent):
            OrderEvent.from_dict(site_order(**overrides))

    @pytest.mark.parametrize("payload", [None, [], "order"])
    def test_rejects_non_objects(self, payload):
        with pytest.raises(InvalidOrderEvent):
            OrderEvent.from_dict(payload)

    def test_numeric_fields_are_coerced(self):
        order = OrderEvent.from_dict(site_order(
            totalCost="420.5",
            discount="20",
            date="1700000000000",
            items=[{"name": "Mug", "cost": "420.5", "quantity": "1"}],
        ))

        assert order.total_cost == 420.5
        assert order.discount == 20
        assert order.date == 1_700_000_000_000
        assert order.items[0].cost == 420.5
        assert order.items[0].quantity == 1

    def test_missing_optional_numbers(self):
        order = OrderEvent.from_dict(site_order(totalCost=None, discount="", date=None))

        assert order.total_cost == 0
        assert order.discount is None
        assert order.date is None

    @pytest.mark.parametrize("overrides", [
        {"totalCost": "abc"},
        {"totalCost": True},
        {"totalCost": [420]},
        {"totalCost": "nan"},
        {"discount": "ten"},
        {"date": "yesterday"},
        {"items": [{"name": "Mug", "cost": "x", "quantity": 1}]},
        {"items": [{"name": "Mug", "cost": 1, "quantity": "2.5"}]},
    ])
    def test_rejects_non_numeric_amounts(self, overrides):
        with pytest.raises(InvalidOrderEvent):
            OrderEvent.from_dict(site_order(**overrides))

    def test_invalid_order_event_is_value_error(self):
        assert issubclass(InvalidOrderEvent, ValueError)


class TestJson:
    def test_json_keeps_camel_case_and_unicode(self):
        order = OrderEvent.from_dict(site_order(deliveryAddress="Київ"))

        raw = order.to_json()

        assert "Київ" in raw
        data = json.loads(raw)
        assert data["externalOrderId"] == "1001"
        assert data["orderStatus"] == 1
        assert data["items"][0]["imageUrl"] == "https://x/y.png"

    def test_from_json_rejects_garbage(self):
        with pytest.raises(InvalidOrderEvent):
            OrderEvent.from_json("{not json")

    def test_from_json_reads_what_to_json_wrote(self):
        order = OrderEvent.from_dict(site_order())
        assert OrderEvent.from_json(order.to_json()) == order
