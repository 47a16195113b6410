"""
Queue worker: the polling consumer that moves order events into the CRM.

One tick handles at most one queue entry:

    pending --dispatch--> ok      -> retry state cleared, entry retired
                          failed  -> processing (attempts + 1, retry_at set)
                                     or dead-letter once attempts hit MAX_RETRIES
    processing (due)  --dispatch--> same as above
    processing (not due)          -> pushed back to the processing tail

Entries are moved as the exact string that was popped. A crash between a pop
and the following push loses that entry; the store offers no transaction
spanning both calls.
"""
from app.datetime_utils import now_ms
from app.logging_config import TickContext, get_logger
from app.models import InvalidOrderEvent, OrderEvent
from app.queue import keys
from app.queue.dispatcher import DispatchResult
from app.queue.tick_lock import TickLock

logger = get_logger(__name__)


class TickOutcome:
    IDLE = "idle"
    SKIPPED = "skipped"              # overlapping tick refused
    NOT_DUE = "not_due"              # processing entry rotated to tail
    DROPPED = "dropped"              # processing entry without retry state
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"
    ERROR = "error"                  # store failure, tick aborted


class QueueWorker:
    def __init__(self, store, dispatcher, retry_scheduler, history=None,
                 clock=now_ms, tick_lock: TickLock = None):
        self.store = store
        self.dispatcher = dispatcher
        self.retry = retry_scheduler
        self.history = history
        self.clock = clock
        self.tick_lock = tick_lock or TickLock()

    def tick(self):
        """
        Run one polling step. Never raises.

        Returns:
            str: one of the TickOutcome values
        """
        with self.tick_lock.try_acquire("queue-tick") as acquired:
            if not acquired:
                return TickOutcome.SKIPPED
            try:
                with TickContext("queue_tick") as ctx:
                    ctx.outcome = self._tick()
                    return ctx.outcome
            except Exception:
                # Store I/O failure: abort this tick, the next one starts over
                logger.error("Queue worker tick aborted", exc_info=True)
                return TickOutcome.ERROR

    def _tick(self):
        raw = self.store.pop_front(keys.PENDING_QUEUE)
        if raw is not None:
            return self._process(raw)

        raw = self.store.pop_front(keys.PROCESSING_QUEUE)
        if raw is None:
            return TickOutcome.IDLE

        try:
            order = OrderEvent.from_json(raw)
        except InvalidOrderEvent as e:
            return self._dead_letter_unreadable(raw, e)

        order_id = order.external_order_id
        retry_at = self.retry.retry_at(order_id)
        if retry_at is None:
            # Entries only reach processing together with retry state
            logger.warning(
                "Processing entry has no retry state, dropping it",
                order_id=order_id,
                entry=raw[:500],
            )
            return TickOutcome.DROPPED

        if self.clock() < retry_at:
            self.store.push_back(keys.PROCESSING_QUEUE, raw)
            return TickOutcome.NOT_DUE

        return self._process(raw, order)

    def _process(self, raw, order=None):
        if order is None:
            try:
                order = OrderEvent.from_json(raw)
            except InvalidOrderEvent as e:
                return self._dead_letter_unreadable(raw, e)

        self._record(order, "processing")
        try:
            result = self.dispatcher.dispatch(order)
        except Exception as e:
            result = DispatchResult.failure(f"{type(e).__name__}: {e}")

        if result.ok:
            return self._on_success(order, result)
        return self._on_failure(raw, order, result)

    def _on_success(self, order, result):
        self.retry.on_success(order.external_order_id)
        logger.info(
            "Order delivered to CRM",
            order_id=order.external_order_id,
            stage=order.stage.name,
            payment_error=result.payment_error,
        )
        self._record(
            order,
            "completed",
            crm_response=result.crm_response,
            error_message=result.payment_error,
        )
        return TickOutcome.SUCCEEDED

    def _on_failure(self, raw, order, result):
        decision = self.retry.on_failure(order.external_order_id)

        if decision.dead_letter:
            self.store.push_back(keys.DEAD_LETTER_QUEUE, raw)
            logger.error(
                "Order moved to dead-letter queue",
                order_id=order.external_order_id,
                stage=order.stage.name,
                attempts=decision.attempts,
                reason=result.reason,
            )
            self._record(
                order,
                "dead_letter",
                crm_response=result.crm_response,
                error_message=result.reason,
                retry_count=decision.attempts,
            )
            return TickOutcome.DEAD_LETTERED

        self.store.push_back(keys.PROCESSING_QUEUE, raw)
        logger.warning(
            "Order dispatch will be retried",
            order_id=order.external_order_id,
            stage=order.stage.name,
            attempt=decision.attempts,
            max_retries=self.retry.policy.max_retries,
            retry_in_seconds=round(decision.backoff_ms / 1000),
            reason=result.reason,
        )
        self._record(
            order,
            "failed",
            crm_response=result.crm_response,
            error_message=result.reason,
            retry_count=decision.attempts,
        )
        return TickOutcome.RETRY_SCHEDULED

    def _dead_letter_unreadable(self, raw, error):
        # Without an order id there is no retry state to keep
        self.store.push_back(keys.DEAD_LETTER_QUEUE, raw)
        logger.error(
            "Unreadable queue entry moved to dead-letter queue",
            error=str(error),
            entry=str(raw)[:500],
        )
        return TickOutcome.DEAD_LETTERED

    def _record(self, order, status, **details):
        if self.history is not None:
            self.history.record_safely(order, status, **details)
