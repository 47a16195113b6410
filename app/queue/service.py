import json

from app.logging_config import get_logger
from app.queue import keys

logger = get_logger(__name__)

DLQ_PREVIEW_LIMIT = 100


class OrderQueue:
    """
    Intake and operator operations on the shared queue store.

    The worker consumes what enqueue() produces; operators use the rest.
    """

    def __init__(self, store, history=None):
        self.store = store
        self.history = history

    def enqueue(self, order):
        """Append one order event to the pending queue (single RPUSH)."""
        self.store.push_back(keys.PENDING_QUEUE, order.to_json())
        logger.info(
            "Order queued",
            order_id=order.external_order_id,
            stage=order.stage.name,
        )
        if self.history is not None:
            self.history.record_safely(order, "pending")

    def queue_lengths(self):
        return {
            "pending": self.store.length(keys.PENDING_QUEUE),
            "processing": self.store.length(keys.PROCESSING_QUEUE),
            "dead_letter": self.store.length(keys.DEAD_LETTER_QUEUE),
        }

    def list_dead_letter(self, limit=DLQ_PREVIEW_LIMIT):
        """
        Decoded dead-letter entries, oldest first. Entries that are not JSON
        objects are returned as {"raw": ...} so operators still see them.
        """
        if limit <= 0:
            return []
        items = []
        for raw in self.store.items(keys.DEAD_LETTER_QUEUE, 0, limit - 1):
            try:
                entry = json.loads(raw)
            except ValueError:
                entry = None
            items.append(entry if isinstance(entry, dict) else {"raw": raw})
        return items

    def requeue_dead_letter(self, order_id):
        """
        Move the first dead-letter entry for order_id back to the pending tail.

        Retry state is cleared before the entry is pushed, so the worker
        treats it as never attempted.

        Returns:
            bool: True if an entry was found and requeued
        """
        order_id = str(order_id)
        for raw in self.store.items(keys.DEAD_LETTER_QUEUE):
            try:
                entry_id = json.loads(raw).get("externalOrderId")
            except (ValueError, AttributeError):
                continue
            if str(entry_id) != order_id:
                continue

            if not self.store.remove(keys.DEAD_LETTER_QUEUE, raw):
                # Someone else took it between the scan and the remove
                continue
            self.store.delete(keys.retry_count_key(order_id), keys.retry_at_key(order_id))
            self.store.push_back(keys.PENDING_QUEUE, raw)
            logger.info("Dead-letter order requeued", order_id=order_id)
            return True

        logger.info("Dead-letter order not found", order_id=order_id)
        return False
