"""
Request / response shapes for the KeyCRM endpoints the relay calls.

Every request dataclass serializes through to_dict(), which drops unset
(None) fields so the CRM applies its own defaults.
"""
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional


def _compact(value):
    if is_dataclass(value):
        result = {}
        for f in fields(value):
            item = _compact(getattr(value, f.name))
            if item is not None:
                result[f.name] = item
        return result
    if isinstance(value, list):
        return [_compact(v) for v in value]
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items() if v is not None}
    return value


class Payload:
    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the JSON request body"""
        return _compact(self)


@dataclass
class ProductProperty(Payload):
    name: str
    value: str


@dataclass
class Product(Payload):
    name: str
    price: float
    quantity: int
    sku: Optional[str] = None
    picture: Optional[str] = None
    comment: Optional[str] = None
    properties: Optional[List[ProductProperty]] = None


@dataclass
class CustomField(Payload):
    """Open-ended CRM custom field, addressed by its uuid (e.g. OR_1001)."""
    uuid: str
    value: Any


@dataclass
class Buyer(Payload):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class Contact(Payload):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class Shipping(Payload):
    shipping_service: Optional[str] = None
    shipping_address_city: Optional[str] = None
    shipping_address_country: Optional[str] = None
    shipping_address_region: Optional[str] = None
    shipping_address_zip: Optional[str] = None
    shipping_receive_point: Optional[str] = None
    shipping_secondary_line: Optional[str] = None


@dataclass
class OrderPayment(Payload):
    """Payment embedded in the create-order body."""
    amount: float
    status: str  # "paid" | "not_paid"
    payment_method: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Marketing(Payload):
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None


@dataclass
class CreateOrderRequest(Payload):
    source_id: int
    source_uuid: Optional[str] = None
    buyer_comment: Optional[str] = None
    ordered_at: Optional[str] = None
    buyer: Optional[Buyer] = None
    products: List[Product] = field(default_factory=list)
    shipping: Optional[Shipping] = None
    payments: List[OrderPayment] = field(default_factory=list)
    discount_amount: Optional[float] = None
    marketing: Optional[Marketing] = None
    custom_fields: List[CustomField] = field(default_factory=list)


@dataclass
class CreatePipelineCardRequest(Payload):
    title: str
    pipeline_id: int
    source_id: int
    communicate_at: Optional[str] = None
    manager_comment: Optional[str] = None
    contact: Optional[Contact] = None
    products: List[Product] = field(default_factory=list)
    custom_fields: List[CustomField] = field(default_factory=list)


@dataclass
class CreatePaymentRequest(Payload):
    amount: float
    payment_method_id: Optional[int] = None
    payment_method: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    payment_date: Optional[str] = None


@dataclass
class UpdateOrderRequest(Payload):
    status_id: Optional[int] = None
    buyer_comment: Optional[str] = None
    manager_comment: Optional[str] = None
    custom_fields: Optional[List[CustomField]] = None


@dataclass
class CreatedOrder:
    """Decoded create-order response: the CRM id plus everything else it sent."""
    id: Optional[int]
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, data) -> "CreatedOrder":
        data = data if isinstance(data, dict) else {}
        return cls(id=data.get("id"), raw=data)
