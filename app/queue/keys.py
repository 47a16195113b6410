"""Key names used in the queue store."""

PENDING_QUEUE = "orders:pending"
PROCESSING_QUEUE = "orders:processing"
DEAD_LETTER_QUEUE = "orders:dlq"


def retry_count_key(order_id):
    return f"orders:retry:{order_id}"


def retry_at_key(order_id):
    return f"orders:retry_at:{order_id}"


def crm_order_id_key(order_id):
    """Linkage: site order id -> CRM order id."""
    return f"orders:crm_id:{order_id}"
