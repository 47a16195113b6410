from flask import Blueprint, current_app, jsonify, request

from app.keycrm.utils import validate_site_order
from app.logging_config import get_logger
from app.models import InvalidOrderEvent, OrderEvent

logger = get_logger(__name__)

# Blueprint for site webhook and queue operator routes
webhook_bp = Blueprint("webhook", __name__)


def get_order_queue():
    return current_app.extensions["order_queue"]


@webhook_bp.route("/webhook", methods=["POST"])
def receive_orders():
    """
    Accept a batch of site orders and append them to the pending queue.

    Body: {"orders": [ {...order...}, ... ]}
    The whole batch is rejected if any order lacks an id or a known stage.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("orders"), list):
        return jsonify({"error": "Body must be an object with an 'orders' list"}), 400

    orders = []
    errors = []
    for index, raw_order in enumerate(data["orders"]):
        try:
            orders.append(OrderEvent.from_dict(raw_order))
        except InvalidOrderEvent as e:
            errors.append({"index": index, "error": str(e)})

    if errors:
        logger.warning("Webhook batch rejected", errors=errors)
        return jsonify({"error": "Invalid orders", "details": errors}), 400

    for order in orders:
        is_valid, problems = validate_site_order(order)
        if not is_valid:
            # Still queued: the CRM decides whether it accepts the order
            logger.warning(
                "Order failed validation checks",
                order_id=order.external_order_id,
                problems=problems,
            )

    try:
        queue = get_order_queue()
        for order in orders:
            queue.enqueue(order)
    except Exception as e:
        logger.error("Error handling webhook", error=str(e), exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "queued": len(orders),
        "message": f"{len(orders)} orders added to the queue",
    }), 202


@webhook_bp.route("/health", methods=["GET"])
def health():
    try:
        lengths = get_order_queue().queue_lengths()
    except Exception as e:
        logger.error("Error reading queue lengths", error=str(e), exc_info=True)
        return jsonify({"status": "unhealthy", "error": str(e)}), 503

    worker = current_app.extensions.get("queue_worker")
    return jsonify({
        "status": "healthy",
        "queues": {
            "pending": lengths["pending"],
            "processing": lengths["processing"],
            "deadLetter": lengths["dead_letter"],
        },
        "worker": worker.tick_lock.get_status() if worker else None,
    }), 200


@webhook_bp.route("/dlq", methods=["GET"])
def list_dead_letter():
    try:
        queue = get_order_queue()
        count = queue.queue_lengths()["dead_letter"]
        items = queue.list_dead_letter()
        return jsonify({"count": count, "items": items}), 200
    except Exception as e:
        logger.error("Error in /dlq", error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500


@webhook_bp.route("/dlq/retry", methods=["POST"])
def retry_dead_letter():
    data = request.get_json(silent=True) or {}
    order_id = data.get("orderId")
    if order_id in (None, ""):
        return jsonify({"error": "orderId is required"}), 400

    try:
        requeued = get_order_queue().requeue_dead_letter(order_id)
    except Exception as e:
        logger.error("Error in /dlq/retry", order_id=order_id, error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500

    if not requeued:
        return jsonify({"error": "Order not found in dead-letter queue"}), 404
    return jsonify({"success": True, "message": "Order returned to the queue"}), 200
