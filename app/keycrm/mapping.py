"""
Order event -> KeyCRM request builders.
"""
from app.datetime_utils import format_crm_datetime, format_datetime_kyiv, format_iso_utc
from app.keycrm.payloads import (
    Buyer,
    Contact,
    CreateOrderRequest,
    CreatePaymentRequest,
    CreatePipelineCardRequest,
    CustomField,
    Marketing,
    OrderPayment,
    Product,
    ProductProperty,
    Shipping,
    UpdateOrderRequest,
)
from app.keycrm.utils import format_currency, format_phone_number, parse_shipping_address

DEFAULT_CURRENCY = "UAH"
SHIPPING_COUNTRY = "Ukraine"
CATEGORY_PROPERTY = "Категорія"

# Custom field uuids configured in the CRM account
ORDER_DISCOUNT_FIELD = "OR_1001"
LEAD_DISCOUNT_FIELD = "LD_1002"

# Site payment-method label -> KeyCRM payment_method_id.
# Labels not listed here are sent as free-text payment_method.
# GET /order/payment-method lists the ids (see KeyCRMAPI.list_payment_methods).
PAYMENT_METHOD_IDS = {
    "Готівка": 1,
    "Накладений платіж": 2,
    "Оплата карткою": 3,
    "LiqPay": 4,
    "Monobank": 5,
    "Apple Pay": 6,
    "Google Pay": 7,
}


def resolve_payment_method(label):
    """
    Returns:
        (payment_method_id, payment_method) - exactly one of them is set
        when a label is given
    """
    method_id = PAYMENT_METHOD_IDS.get(label) if label else None
    if method_id is not None:
        return method_id, None
    return None, label or None


def _products(order):
    return [
        Product(
            sku=str(item.external_item_id) if item.external_item_id is not None else None,
            name=item.name,
            price=item.cost,
            quantity=item.quantity,
            picture=item.image_url or None,
            comment=item.description,
            properties=[ProductProperty(name=CATEGORY_PROPERTY, value=item.category)] if item.category else None,
        )
        for item in order.items
    ]


def _discount(order):
    return order.discount if order.discount and order.discount > 0 else None


def build_order_request(order, source_id):
    """Create-order body for a NEW_ORDER event."""
    shipping = parse_shipping_address(order.delivery_address, order.delivery_method)
    discount = _discount(order)

    if order.is_paid:
        payment = OrderPayment(
            payment_method=order.payment_method,
            amount=order.total_cost,
            status="paid",
            description=f"Оплата замовлення #{order.external_order_id}",
        )
    else:
        payment = OrderPayment(
            payment_method=order.payment_method,
            amount=order.total_cost,
            status="not_paid",
            description=f"Замовлення #{order.external_order_id}",
        )

    return CreateOrderRequest(
        source_id=source_id,
        source_uuid=order.external_order_id,
        buyer_comment=order.additional_info or None,
        ordered_at=format_crm_datetime(order.date),
        buyer=Buyer(
            full_name=order.full_name,
            email=order.email,
            phone=format_phone_number(order.phone),
        ),
        products=_products(order),
        shipping=Shipping(
            shipping_service=shipping.service,
            shipping_address_city=shipping.city,
            shipping_address_country=SHIPPING_COUNTRY,
            shipping_address_region=shipping.region,
            shipping_address_zip=shipping.zip,
            shipping_receive_point=shipping.receive_point,
            shipping_secondary_line=shipping.secondary_line,
        ) if shipping else None,
        payments=[payment],
        discount_amount=discount,
        marketing=Marketing(utm_source="website", utm_medium="direct"),
        custom_fields=[CustomField(uuid=ORDER_DISCOUNT_FIELD, value=discount)] if discount else [],
    )


def build_manager_comment(order):
    """Plain-text order summary shown to managers on a pipeline card."""
    currency = order.currency or DEFAULT_CURRENCY
    lines = [
        f"ЗАМОВЛЕННЯ #{order.external_order_id}",
        "",
        f"Клієнт: {order.full_name}",
        f"Телефон: {format_phone_number(order.phone) or ''}",
        f"Email: {order.email or ''}",
        "",
        f"Сума: {format_currency(order.total_cost, currency)}",
        f"Доставка: {order.delivery_method or 'Не вказано'}",
        f"Оплата: {order.payment_method or 'Не вказано'}",
        "",
        f"Товари ({len(order.items)} шт.):",
    ]
    lines.extend(
        f"{index}. {item.name} ({item.quantity} шт. × {format_currency(item.cost, currency)})"
        for index, item in enumerate(order.items, start=1)
    )
    lines.extend([
        "",
        f"Адреса доставки: {order.delivery_address or 'Не вказано'}",
        f"Коментар: {order.additional_info}" if order.additional_info else "",
        "",
        f"Час замовлення: {format_datetime_kyiv(order.date) or 'Невідомо'}",
        f"ID клієнта: {order.external_customer_id or ''}",
        f"Статус оплати: {'Оплачено' if order.is_paid else 'Не оплачено'}",
        f"Статус замовлення: {order.status_description or 'Невідомо'} ({int(order.stage)})",
    ])
    return "\n".join(line for line in lines if line != "")


def build_pipeline_card_request(order, pipeline_id, source_id):
    """Pipeline-card (lead) body for a LEAD event."""
    phone = format_phone_number(order.phone)
    discount = _discount(order)
    return CreatePipelineCardRequest(
        title=f"Замовлення #{order.external_order_id}",
        pipeline_id=pipeline_id,
        source_id=source_id,
        communicate_at=format_iso_utc(order.date),
        manager_comment=build_manager_comment(order),
        contact=Contact(
            full_name=order.full_name or None,
            email=order.email or None,
            phone=phone or None,
        ),
        products=_products(order),
        custom_fields=[CustomField(uuid=LEAD_DISCOUNT_FIELD, value=discount)] if discount else [],
    )


def build_payment_request(order):
    """Payment body for a paid NEW_ORDER event."""
    method_id, method_label = resolve_payment_method(order.payment_method)
    return CreatePaymentRequest(
        payment_method_id=method_id,
        payment_method=method_label,
        amount=order.total_cost,
    )


def build_status_update(status_id):
    return UpdateOrderRequest(status_id=status_id)
