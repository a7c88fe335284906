"""Schedule index: the ordered set of timestamps that still hold jobs.

Stored as a Redis sorted set whose members and scores are both the
timestamp, so "smallest timestamp ≤ X" is one ``ZRANGEBYSCORE`` with
``LIMIT 0 1`` (O(log N) in distinct pending timestamps).
"""

from __future__ import annotations

from typing import Any

from spine_delayed.store import RedisStore, store_operation


class ScheduleIndex:
    """Sorted-set view over ``<namespace>delayed_queue_schedule``."""

    def __init__(self, store: RedisStore) -> None:
        self._store = store
        self.key = store.key("delayed_queue_schedule")

    @store_operation("zadd")
    def add(self, timestamp: int, *, pipe: Any = None) -> None:
        """Insert ``timestamp``; adding an existing member is a no-op."""
        client = pipe if pipe is not None else self._store.client
        client.zadd(self.key, {str(timestamp): timestamp})

    @store_operation("zrangebyscore")
    def first_due(self, at: int) -> int | None:
        """Smallest indexed timestamp ≤ ``at``, or ``None``."""
        items = self._store.client.zrangebyscore(self.key, "-inf", at, start=0, num=1)
        if not items:
            return None
        return int(items[0])

    @store_operation("zcard")
    def count(self) -> int:
        return int(self._store.client.zcard(self.key))

    @store_operation("zrange")
    def timestamps(self, limit: int | None = None) -> list[int]:
        """All indexed timestamps in ascending order (first ``limit`` only)."""
        if limit is not None and limit <= 0:
            return []
        end = -1 if limit is None else limit - 1
        return [int(member) for member in self._store.client.zrange(self.key, 0, end)]
