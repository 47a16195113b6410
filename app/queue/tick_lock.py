import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from app.logging_config import get_logger

logger = get_logger(__name__)


class TickLock:
    """
    Non-reentrant guard around a worker tick.

    A tick that fires while another one is still running is skipped rather
    than queued, so two ticks never handle queue entries at the same time.
    """

    def __init__(self):
        self._lock = threading.Lock()  # not an RLock: re-entry must be refused too
        self._holder: Optional[str] = None
        self._acquired_at: Optional[datetime] = None
        self.skipped = 0

    def is_locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def try_acquire(self, operation_name: str):
        """
        Yields True when the lock was taken, False when another tick holds it.
        """
        acquired = self._lock.acquire(blocking=False)
        if not acquired:
            self.skipped += 1
            logger.warning(
                "Tick skipped, previous tick still running",
                operation=operation_name,
                held_by=self._holder,
                held_for_seconds=self._held_for_seconds(),
            )
            yield False
            return

        self._holder = operation_name
        self._acquired_at = datetime.now()
        try:
            yield True
        finally:
            self._holder = None
            self._acquired_at = None
            self._lock.release()

    def _held_for_seconds(self):
        acquired_at = self._acquired_at
        return (datetime.now() - acquired_at).total_seconds() if acquired_at else 0

    def get_status(self) -> dict:
        return {
            "is_locked": self.is_locked(),
            "held_by": self._holder,
            "held_for_seconds": self._held_for_seconds(),
            "skipped_ticks": self.skipped,
        }
