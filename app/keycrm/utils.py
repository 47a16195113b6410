import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
REGION_RE = re.compile(r"\(([^)]+)\)")
RECEIVE_POINT_RE = re.compile(r"відділення|трц|магазин|store|mall", re.IGNORECASE)


def format_phone_number(phone):
    """
    Normalize a Ukrainian phone number to +380XXXXXXXXX.
    Numbers that do not match a known local shape are returned unchanged.
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("380") and len(digits) == 12:
        return f"+{digits}"

    # 0XXXXXXXXX
    if digits.startswith("0") and len(digits) == 10:
        return f"+38{digits}"

    # 80XXXXXXXXX
    if digits.startswith("80") and len(digits) == 11:
        return f"+3{digits}"

    return phone


@dataclass
class ShippingAddress:
    service: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    zip: Optional[str] = None
    receive_point: Optional[str] = None
    secondary_line: Optional[str] = None


def normalize_delivery_service(delivery_method):
    """Map free-text delivery method to the carrier name the CRM knows."""
    if not delivery_method:
        return delivery_method
    lowered = delivery_method.lower()
    if "нова пошта" in lowered:
        return "Нова Пошта"
    if "укрпошта" in lowered:
        return "Укрпошта"
    return delivery_method


def parse_shipping_address(delivery_address, delivery_method=None):
    """
    Split a free-text delivery address into CRM shipping fields.

    The first comma-separated segment is the city, optionally followed by
    "(Region)". Remaining segments are classified as zip code, receive point
    (branch / mall / store), or part of the secondary address line. A segment
    repeating the city name is dropped.

    Returns:
        ShippingAddress, or None if there is no address
    """
    if not delivery_address:
        return None

    parts = [p.strip() for p in delivery_address.split(",") if p.strip()]

    city = ""
    region = ""
    zip_code = ""
    receive_points = []
    secondary = []

    if parts:
        region_match = REGION_RE.search(parts[0])
        if region_match:
            region = region_match.group(1)
        city = re.sub(r"\s*\(.*?\)\s*", "", parts[0], count=1).strip()

    for part in parts[1:]:
        if ZIP_RE.match(part):
            zip_code = part
            continue

        if part.lower() == city.lower():
            continue

        if RECEIVE_POINT_RE.search(part):
            receive_points.append(part)
            continue

        secondary.append(part)

    return ShippingAddress(
        service=normalize_delivery_service(delivery_method),
        city=city or None,
        region=region or None,
        zip=zip_code or None,
        receive_point=", ".join(receive_points) or None,
        secondary_line=", ".join(secondary).strip() or None,
    )


def validate_site_order(order) -> Tuple[bool, List[str]]:
    """
    Business checks on an OrderEvent before it goes to the CRM.

    Returns:
        (is_valid, errors)
    """
    errors = []

    if not order.external_order_id:
        errors.append("Missing order id")

    if not order.email and not order.phone:
        errors.append("Missing customer email or phone")

    if not order.items:
        errors.append("Order has no items")

    if not order.total_cost or order.total_cost <= 0:
        errors.append("Invalid order total")

    for index, item in enumerate(order.items, start=1):
        if not item.name:
            errors.append(f"Item #{index} has no name")
        if not item.cost or item.cost <= 0:
            errors.append(f"Item #{index} has invalid price")
        if not item.quantity or item.quantity <= 0:
            errors.append(f"Item #{index} has invalid quantity")

    # Site totals may already include the discount
    if order.items and order.total_cost and order.total_cost > 0:
        items_total = calculate_order_total(order)
        expected = {items_total, items_total - (order.discount or 0)}
        if not any(abs(order.total_cost - amount) < 0.01 for amount in expected):
            errors.append(
                f"Order total {format_currency(order.total_cost, order.currency)} does not match "
                f"items total {format_currency(items_total, order.currency)}"
            )

    return len(errors) == 0, errors


def calculate_order_total(order):
    return sum(item.cost * item.quantity for item in order.items)


def format_currency(amount, currency="UAH"):
    """Format an amount for manager-facing text, e.g. '1 250,50 UAH'."""
    text = f"{amount:,.2f}".replace(",", " ").replace(".", ",")
    if text.endswith(",00"):
        text = text[:-3]
    return f"{text} {currency or 'UAH'}"
