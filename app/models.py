import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Naive UTC timestamp for DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InvalidOrderEvent(ValueError):
    """Inbound JSON cannot be turned into an OrderEvent."""


def _number(value, name, integer=False):
    """
    Coerce a numeric JSON field. Numeric strings ("500", "12.5") are accepted;
    missing values become 0.

    Raises:
        InvalidOrderEvent: if the value is not a number
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise InvalidOrderEvent(f"{name} must be a number, got {value!r}")
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            try:
                value = float(value)
            except ValueError:
                raise InvalidOrderEvent(f"{name} must be a number, got {value!r}")
    if not isinstance(value, (int, float)) or value != value:  # NaN
        raise InvalidOrderEvent(f"{name} must be a number, got {value!r}")
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise InvalidOrderEvent(f"{name} must be a whole number, got {value!r}")
        return int(value)
    return value


class OrderStage(IntEnum):
    """Lifecycle stage reported by the site (orderStatus)."""
    LEAD = 0        # cart / lead
    NEW_ORDER = 1
    SHIPPED = 2
    DELIVERED = 3


class PaymentStage(IntEnum):
    UNPAID = 0
    PAID = 1


@dataclass(frozen=True)
class LineItem:
    external_item_id: Any
    name: str
    cost: float
    quantity: int
    category: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        if not isinstance(data, dict):
            raise InvalidOrderEvent(f"Line item must be an object, got {type(data).__name__}")
        return cls(
            external_item_id=data.get("externalItemId"),
            name=data.get("name") or "",
            cost=_number(data.get("cost"), "Item cost"),
            quantity=_number(data.get("quantity"), "Item quantity", integer=True),
            category=data.get("category") or None,
            url=data.get("url"),
            image_url=data.get("imageUrl"),
            description=data.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalItemId": self.external_item_id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "cost": self.cost,
            "url": self.url,
            "imageUrl": self.image_url,
            "description": self.description,
        }


@dataclass(frozen=True)
class OrderEvent:
    """
    One state transition reported by the site for one order.

    The same external_order_id can arrive several times (one per lifecycle
    stage); each arrival is its own unit of work in the queue.
    """
    external_order_id: str
    stage: OrderStage
    payment_stage: PaymentStage = PaymentStage.UNPAID
    external_customer_id: Optional[str] = None
    total_cost: float = 0
    currency: Optional[str] = None
    date: Optional[int] = None  # epoch milliseconds
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    discount: Optional[float] = None
    status: Optional[str] = None
    status_description: Optional[str] = None
    delivery_method: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    additional_info: Optional[str] = None
    items: List[LineItem] = field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return self.payment_stage == PaymentStage.PAID

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderEvent":
        """
        Build an OrderEvent from the site's camelCase JSON.

        Raises:
            InvalidOrderEvent: if the id or lifecycle stage is missing/unknown
        """
        if not isinstance(data, dict):
            raise InvalidOrderEvent(f"Order must be an object, got {type(data).__name__}")

        order_id = data.get("externalOrderId")
        if order_id in (None, ""):
            raise InvalidOrderEvent("Order is missing externalOrderId")

        try:
            stage = OrderStage(int(data.get("orderStatus")))
        except (TypeError, ValueError):
            raise InvalidOrderEvent(
                f"Order {order_id} has unknown orderStatus {data.get('orderStatus')!r}"
            )

        try:
            payment_stage = PaymentStage(int(data.get("paymentStatus") or 0))
        except (TypeError, ValueError):
            raise InvalidOrderEvent(
                f"Order {order_id} has unknown paymentStatus {data.get('paymentStatus')!r}"
            )

        items = data.get("items") or []
        if not isinstance(items, list):
            raise InvalidOrderEvent(f"Order {order_id} items must be a list")

        discount = data.get("discount")
        if discount in (None, ""):
            discount = None
        else:
            discount = _number(discount, f"Order {order_id} discount")

        date = data.get("date")
        if date in (None, ""):
            date = None
        else:
            date = _number(date, f"Order {order_id} date", integer=True)

        customer_id = data.get("externalCustomerId")
        return cls(
            external_order_id=str(order_id),
            stage=stage,
            payment_stage=payment_stage,
            external_customer_id=str(customer_id) if customer_id is not None else None,
            total_cost=_number(data.get("totalCost"), f"Order {order_id} totalCost"),
            currency=data.get("currency"),
            date=date,
            email=data.get("email"),
            phone=data.get("phone"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            discount=discount,
            status=data.get("status"),
            status_description=data.get("statusDescription"),
            delivery_method=data.get("deliveryMethod"),
            payment_method=data.get("paymentMethod"),
            delivery_address=data.get("deliveryAddress"),
            additional_info=data.get("additionalInfo"),
            items=[LineItem.from_dict(item) for item in items],
        )

    @classmethod
    def from_json(cls, raw: str) -> "OrderEvent":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise InvalidOrderEvent(f"Queue entry is not valid JSON: {e}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalOrderId": self.external_order_id,
            "externalCustomerId": self.external_customer_id,
            "orderStatus": int(self.stage),
            "paymentStatus": int(self.payment_stage),
            "totalCost": self.total_cost,
            "currency": self.currency,
            "date": self.date,
            "email": self.email,
            "phone": self.phone,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "discount": self.discount,
            "status": self.status,
            "statusDescription": self.status_description,
            "deliveryMethod": self.delivery_method,
            "paymentMethod": self.payment_method,
            "deliveryAddress": self.delivery_address,
            "additionalInfo": self.additional_info,
            "items": [item.to_dict() for item in self.items],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class HistoryStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


class OrderMapping(db.Model):
    """Latest known state of one site order on its way into the CRM."""
    __tablename__ = "order_mappings"

    id = db.Column(db.Integer, primary_key=True)
    external_order_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    site_order = db.Column(db.JSON, nullable=False)
    crm_order = db.Column(db.JSON, nullable=True)
    current_status = db.Column(db.Enum(HistoryStatus), nullable=False, default=HistoryStatus.PENDING)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    status_history = db.relationship(
        "OrderStatusHistory",
        backref="mapping",
        order_by="OrderStatusHistory.id",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def __repr__(self):
        return f"<OrderMapping {self.external_order_id} - {self.current_status.value}>"

    def to_dict(self, include_history=True):
        data = {
            "external_order_id": self.external_order_id,
            "site_order": self.site_order,
            "crm_order": self.crm_order,
            "current_status": self.current_status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_history:
            data["status_history"] = [entry.to_dict() for entry in self.status_history]
        return data


class OrderStatusHistory(db.Model):
    """One status transition of an order mapping."""
    __tablename__ = "order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    mapping_id = db.Column(db.Integer, db.ForeignKey("order_mappings.id"), nullable=False, index=True)
    status = db.Column(db.Enum(HistoryStatus), nullable=False)
    date = db.Column(db.DateTime, nullable=False, default=utcnow)

    # Only kept for failures or responses without a CRM id
    crm_response = db.Column(db.JSON, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    retry_count = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f"<OrderStatusHistory {self.mapping_id} - {self.status.value}>"

    def to_dict(self):
        return {
            "status": self.status.value,
            "date": self.date.isoformat() if self.date else None,
            "crm_response": self.crm_response,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
        }
