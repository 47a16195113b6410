"""
Order history routes (read model over the order_mappings table).
"""
from flask import Blueprint, jsonify, request

from app.logging_config import get_logger
from app.services.history_service import HistoryService

logger = get_logger(__name__)

history_bp = Blueprint("history", __name__)


@history_bp.route("/history", methods=["GET"])
def list_history():
    try:
        page = request.args.get("page", 1, type=int)
        page_size = min(request.args.get("page_size", 10, type=int), 100)
        mappings = HistoryService.get_history(page, page_size)
        return jsonify({
            "orders": [m.to_dict() for m in mappings],
            "page": page,
            "page_size": page_size,
            "total_count": HistoryService.get_history_count(),
        }), 200
    except Exception as e:
        logger.error("Error in /history", error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500


@history_bp.route("/history/stats", methods=["GET"])
def history_stats():
    try:
        return jsonify(HistoryService.get_stats()), 200
    except Exception as e:
        logger.error("Error in /history/stats", error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500


@history_bp.route("/history/<order_id>", methods=["GET"])
def get_order_history(order_id):
    try:
        mapping = HistoryService.get_mapping(order_id)
        if mapping is None:
            return jsonify({"error": "Order not found"}), 404
        return jsonify(mapping.to_dict()), 200
    except Exception as e:
        logger.error("Error in /history/<order_id>", order_id=order_id, error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500


@history_bp.route("/history", methods=["DELETE"])
def clean_history():
    result = HistoryService.clean()
    status_code = 200 if not result["errors"] else 500
    return jsonify(result), status_code
