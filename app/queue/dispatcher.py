"""
Order dispatcher: turns one OrderEvent into the KeyCRM call(s) for its stage.

Dispatch never touches retry state; the worker decides what a failure means.
"""
from dataclasses import dataclass
from typing import Any, Optional

from app.keycrm.mapping import (
    build_order_request,
    build_payment_request,
    build_pipeline_card_request,
    build_status_update,
)
from app.logging_config import get_logger
from app.models import OrderStage
from app.queue import keys

logger = get_logger(__name__)


class MissingLinkageError(LookupError):
    """Stage 2/3 event for an order that has no CRM order id yet."""


@dataclass
class DispatchResult:
    ok: bool
    reason: Optional[str] = None
    crm_response: Any = None
    payment_error: Optional[str] = None

    @classmethod
    def success(cls, crm_response=None, payment_error=None):
        return cls(ok=True, crm_response=crm_response, payment_error=payment_error)

    @classmethod
    def failure(cls, reason, crm_response=None, payment_error=None):
        return cls(ok=False, reason=reason, crm_response=crm_response, payment_error=payment_error)


@dataclass(frozen=True)
class DispatchSettings:
    source_id: int = 2
    pipeline_id: int = 1
    shipped_status_id: int = 8
    delivered_status_id: int = 9
    payment_failure_fails_dispatch: bool = False

    @classmethod
    def from_config(cls, config):
        return cls(
            source_id=int(config.get("SOURCE_ID", 2)),
            pipeline_id=int(config.get("PIPELINE_ID", 1)),
            shipped_status_id=int(config.get("SHIPPED_STATUS_ID", 8)),
            delivered_status_id=int(config.get("DELIVERED_STATUS_ID", 9)),
            payment_failure_fails_dispatch=bool(config.get("PAYMENT_FAILURE_FAILS_DISPATCH", False)),
        )


class OrderDispatcher:
    def __init__(self, crm, store, settings: DispatchSettings = None):
        self.crm = crm
        self.store = store
        self.settings = settings or DispatchSettings()
        self._handlers = {
            OrderStage.LEAD: self._dispatch_lead,
            OrderStage.NEW_ORDER: self._dispatch_new_order,
            OrderStage.SHIPPED: self._dispatch_shipped,
            OrderStage.DELIVERED: self._dispatch_delivered,
        }
        missing = set(OrderStage) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No dispatch handler for stages: {sorted(missing)}")

    def dispatch(self, order) -> DispatchResult:
        """
        Send one order event to the CRM.

        Any exception raised while building payloads or talking to the CRM is
        returned as a failure; nothing propagates to the caller.
        """
        handler = self._handlers[order.stage]
        logger.info(
            "Dispatching order",
            order_id=order.external_order_id,
            stage=order.stage.name,
        )
        try:
            return handler(order)
        except Exception as e:
            logger.warning(
                "Order dispatch failed",
                order_id=order.external_order_id,
                stage=order.stage.name,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            return DispatchResult.failure(f"{type(e).__name__}: {e}")

    # -------------------------
    # Linkage
    # -------------------------
    def get_crm_order_id(self, order_id):
        return self.store.get(keys.crm_order_id_key(order_id))

    def _store_crm_order_id(self, order_id, crm_order_id):
        self.store.set(keys.crm_order_id_key(order_id), crm_order_id)

    # -------------------------
    # Stage handlers
    # -------------------------
    def _dispatch_lead(self, order):
        payload = build_pipeline_card_request(order, self.settings.pipeline_id, self.settings.source_id)
        response = self.crm.create_pipeline_card(payload)
        logger.info("Pipeline card created", order_id=order.external_order_id)
        return DispatchResult.success(crm_response=response)

    def _dispatch_new_order(self, order):
        created = self.crm.create_order(build_order_request(order, self.settings.source_id))
        crm_order_id = str(created.id)

        # Duplicate deliveries create a second CRM order; the newest id wins.
        self._store_crm_order_id(order.external_order_id, crm_order_id)
        logger.info(
            "CRM order created",
            order_id=order.external_order_id,
            crm_order_id=crm_order_id,
        )

        if not order.is_paid:
            return DispatchResult.success(crm_response=created.raw)

        try:
            self.crm.create_order_payment(crm_order_id, build_payment_request(order))
        except Exception as e:
            payment_error = f"{type(e).__name__}: {e}"
            logger.error(
                "Payment creation failed for created CRM order",
                order_id=order.external_order_id,
                crm_order_id=crm_order_id,
                error=payment_error,
                fails_dispatch=self.settings.payment_failure_fails_dispatch,
                exc_info=True,
            )
            if self.settings.payment_failure_fails_dispatch:
                return DispatchResult.failure(
                    f"payment: {payment_error}",
                    crm_response=created.raw,
                    payment_error=payment_error,
                )
            return DispatchResult.success(crm_response=created.raw, payment_error=payment_error)

        logger.info(
            "CRM payment created",
            order_id=order.external_order_id,
            crm_order_id=crm_order_id,
            amount=order.total_cost,
        )
        return DispatchResult.success(crm_response=created.raw)

    def _update_status(self, order, status_id):
        crm_order_id = self.get_crm_order_id(order.external_order_id)
        if not crm_order_id:
            raise MissingLinkageError(f"No CRM order linked to site order {order.external_order_id}")

        response = self.crm.update_order(crm_order_id, build_status_update(status_id))
        logger.info(
            "CRM order status updated",
            order_id=order.external_order_id,
            crm_order_id=crm_order_id,
            status_id=status_id,
        )
        return DispatchResult.success(crm_response=response)

    def _dispatch_shipped(self, order):
        return self._update_status(order, self.settings.shipped_status_id)

    def _dispatch_delivered(self, order):
        return self._update_status(order, self.settings.delivered_status_id)
