"""
Queue store backends.

The worker, the webhook intake and the operator tools all share one store.
Every method is a single atomic operation on the backend; nothing here spans
more than one call.
"""
import threading
from collections import deque
from typing import List, Optional

import redis

from app.logging_config import get_logger

logger = get_logger(__name__)


class QueueStore:
    """Interface for the shared list / key-value store."""

    def push_back(self, queue_name: str, item: str) -> None:
        raise NotImplementedError

    def pop_front(self, queue_name: str) -> Optional[str]:
        raise NotImplementedError

    def length(self, queue_name: str) -> int:
        raise NotImplementedError

    def items(self, queue_name: str, start: int = 0, end: int = -1) -> List[str]:
        """Entries between start and end inclusive (Redis LRANGE semantics)."""
        raise NotImplementedError

    def remove(self, queue_name: str, item: str) -> int:
        """Remove the first entry equal to item. Returns the number removed."""
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value) -> None:
        raise NotImplementedError

    def delete(self, *keys: str) -> None:
        raise NotImplementedError


class RedisQueueStore(QueueStore):
    """QueueStore on Redis lists (LPOP/RPUSH) and string keys."""

    def __init__(self, url: str):
        self.r = redis.Redis.from_url(url, decode_responses=True)

    def push_back(self, queue_name, item):
        self.r.rpush(queue_name, item)

    def pop_front(self, queue_name):
        return self.r.lpop(queue_name)

    def length(self, queue_name):
        return int(self.r.llen(queue_name))

    def items(self, queue_name, start=0, end=-1):
        return self.r.lrange(queue_name, start, end)

    def remove(self, queue_name, item):
        return int(self.r.lrem(queue_name, 1, item))

    def get(self, key):
        return self.r.get(key)

    def set(self, key, value):
        self.r.set(key, str(value))

    def delete(self, *keys):
        if keys:
            self.r.delete(*keys)

    def ping(self) -> bool:
        return bool(self.r.ping())


class InMemoryQueueStore(QueueStore):
    """
    Process-local QueueStore for tests and single-process local runs.
    Contents are lost on restart.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._lists = {}
        self._values = {}

    def _list(self, queue_name):
        return self._lists.setdefault(queue_name, deque())

    def push_back(self, queue_name, item):
        with self._lock:
            self._list(queue_name).append(item)

    def pop_front(self, queue_name):
        with self._lock:
            entries = self._list(queue_name)
            return entries.popleft() if entries else None

    def length(self, queue_name):
        with self._lock:
            return len(self._list(queue_name))

    def items(self, queue_name, start=0, end=-1):
        with self._lock:
            entries = list(self._list(queue_name))
        # LRANGE treats end as inclusive
        stop = None if end == -1 else end + 1
        return entries[start:stop]

    def remove(self, queue_name, item):
        with self._lock:
            entries = self._list(queue_name)
            try:
                entries.remove(item)
            except ValueError:
                return 0
            return 1

    def get(self, key):
        with self._lock:
            return self._values.get(key)

    def set(self, key, value):
        with self._lock:
            self._values[key] = str(value)

    def delete(self, *keys):
        with self._lock:
            for key in keys:
                self._values.pop(key, None)


def build_queue_store(config) -> QueueStore:
    """
    Create the queue store selected by QUEUE_BACKEND.

    Args:
        config: Flask config mapping (or any dict with the same keys)
    """
    backend = (config.get("QUEUE_BACKEND") or "redis").lower()
    if backend == "memory":
        logger.warning("Using in-memory queue store; queued orders will not survive a restart")
        return InMemoryQueueStore()
    if backend == "redis":
        return RedisQueueStore(config.get("REDIS_URL"))
    raise ValueError(f"Unknown QUEUE_BACKEND: {backend}")
