"""Timestamp buckets: one FIFO list of serialized jobs per due second."""

from __future__ import annotations

from typing import Any

from spine_delayed.store import RedisStore, store_operation

from .index import ScheduleIndex


class TimestampBucket:
    """Redis list at ``<namespace>delayed:<timestamp>``.

    Jobs are appended at the tail and drained from the head. Every
    operation that can empty the bucket removes the timestamp from the
    :class:`ScheduleIndex` inside the same Lua script.
    """

    def __init__(self, store: RedisStore, index: ScheduleIndex, timestamp: int) -> None:
        self._store = store
        self._index = index
        self.timestamp = timestamp
        self.key = store.key("delayed", timestamp)

    @store_operation("rpush")
    def push(self, item: str, *, pipe: Any = None) -> None:
        client = pipe if pipe is not None else self._store.client
        client.rpush(self.key, item)

    @store_operation("pop_and_cleanup")
    def pop(self) -> str | None:
        """Atomically remove and return the head item, or ``None`` when empty."""
        return self._store.run_script(
            "pop_and_cleanup",
            keys=[self.key, self._index.key],
            args=[str(self.timestamp)],
        )

    @store_operation("remove_and_cleanup")
    def remove(self, item: str) -> int:
        """Remove every occurrence of ``item``. Returns the number removed."""
        removed = self._store.run_script(
            "remove_and_cleanup",
            keys=[self.key, self._index.key],
            args=[str(self.timestamp), item],
        )
        return int(removed or 0)

    @store_operation("llen")
    def __len__(self) -> int:
        return int(self._store.client.llen(self.key))

    @store_operation("lrange")
    def items(self, limit: int | None = None) -> list[str]:
        """Non-destructive view of the first ``limit`` items (all by default)."""
        if limit is not None and limit <= 0:
            return []
        end = -1 if limit is None else limit - 1
        return list(self._store.client.lrange(self.key, 0, end))

    def __repr__(self) -> str:
        return f"TimestampBucket({self.key!r})"
