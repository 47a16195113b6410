"""
Retry scheduling for failed order dispatches.

Retry state lives in the queue store, keyed by the site order id:
  orders:retry:{id}     attempt counter (absent == never failed)
  orders:retry_at:{id}  epoch ms before which the entry must not be retried
Both keys are removed on success and on dead-letter.
"""
import random
from dataclasses import dataclass
from typing import Callable, Optional

from app.datetime_utils import now_ms
from app.logging_config import get_logger
from app.queue import keys

logger = get_logger(__name__)

JITTER_MS = 1000


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    initial_backoff: int = 1000   # ms
    max_backoff: int = 60000      # ms
    multiplier: float = 2

    @classmethod
    def from_config(cls, config):
        return cls(
            max_retries=int(config.get("MAX_RETRIES", 5)),
            initial_backoff=int(config.get("INITIAL_BACKOFF", 1000)),
            max_backoff=int(config.get("MAX_BACKOFF", 60000)),
            multiplier=float(config.get("BACKOFF_MULTIPLIER", 2)),
        )


@dataclass(frozen=True)
class FailureDecision:
    """Outcome of recording one failure."""
    order_id: str
    attempts: int
    dead_letter: bool
    retry_at: Optional[int] = None
    backoff_ms: Optional[int] = None


class RetryScheduler:
    """Backoff computation and per-order attempt bookkeeping."""

    def __init__(self, store, policy: RetryPolicy = None,
                 clock: Callable[[], int] = now_ms,
                 jitter: Callable[[], float] = random.random):
        self.store = store
        self.policy = policy or RetryPolicy()
        self.clock = clock
        self.jitter = jitter

    def compute_backoff(self, attempt_number: int) -> int:
        """
        Delay in ms before retrying after attempt_number previous failures.

        min(initial * multiplier**n, max) plus uniform jitter in [0, 1000).
        """
        if attempt_number < 0:
            raise ValueError("attempt_number must be >= 0")
        try:
            base = min(
                self.policy.initial_backoff * self.policy.multiplier ** attempt_number,
                self.policy.max_backoff,
            )
        except OverflowError:
            base = self.policy.max_backoff
        # jitter() is in [0, 1), so the added delay stays below JITTER_MS
        return int(base + self.jitter() * JITTER_MS)

    def should_dead_letter(self, attempt_count: int) -> bool:
        return attempt_count >= self.policy.max_retries

    def attempts(self, order_id: str) -> int:
        value = self.store.get(keys.retry_count_key(order_id))
        return int(value) if value else 0

    def retry_at(self, order_id: str) -> Optional[int]:
        value = self.store.get(keys.retry_at_key(order_id))
        return int(value) if value else None

    def on_failure(self, order_id: str) -> FailureDecision:
        """
        Record one failed attempt.

        Either schedules the next attempt (counter + 1, retry_at persisted) or,
        once the counter reaches max_retries, clears the retry state and
        reports that the entry belongs in dead-letter.
        """
        previous = self.attempts(order_id)
        attempts = previous + 1

        if self.should_dead_letter(attempts):
            self.clear(order_id)
            return FailureDecision(order_id=order_id, attempts=attempts, dead_letter=True)

        backoff_ms = self.compute_backoff(previous)
        retry_at = self.clock() + backoff_ms
        self.store.set(keys.retry_count_key(order_id), attempts)
        self.store.set(keys.retry_at_key(order_id), retry_at)
        return FailureDecision(
            order_id=order_id,
            attempts=attempts,
            dead_letter=False,
            retry_at=retry_at,
            backoff_ms=backoff_ms,
        )

    def on_success(self, order_id: str) -> None:
        self.clear(order_id)

    def clear(self, order_id: str) -> None:
        self.store.delete(keys.retry_count_key(order_id), keys.retry_at_key(order_id))
