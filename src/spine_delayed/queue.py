"""Ready-to-run queue that due jobs are forwarded to.

The scheduler does not run jobs. When a job comes due the worker hands it to
a :class:`ReadyQueue`; an unrelated pool of Resque workers picks it up from
there. :class:`ResqueQueue` writes the php-resque payload format into the
same Redis database the schedule lives in:

::

    SADD  resque:queues        <queue>
    RPUSH resque:queue:<queue> {"class": ..., "args": [{...}], "id": ..., "queue_time": ...}

Enqueueing the same logical job twice is harmless for the consumers
(delivery is at-least-once end to end).
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from spine_delayed.store import RedisStore, store_operation


@runtime_checkable
class ReadyQueue(Protocol):
    """Anything the worker can forward a due job to."""

    def enqueue(self, queue: str, job_class: str, args: Mapping[str, Any]) -> str:
        """Make the job available for immediate pickup. Returns a job id."""
        ...


class ResqueQueue:
    """php-resque compatible queue on a :class:`RedisStore`."""

    def __init__(self, store: RedisStore) -> None:
        self._store = store

    def queue_key(self, queue: str) -> str:
        return self._store.key("queue", queue)

    @store_operation("resque_enqueue")
    def enqueue(self, queue: str, job_class: str, args: Mapping[str, Any]) -> str:
        job_id = uuid.uuid4().hex
        payload = json.dumps(
            {
                "class": job_class,
                "args": [dict(args)],
                "id": job_id,
                "queue_time": time.time(),
            }
        )

        with self._store.pipeline() as pipe:
            pipe.sadd(self._store.key("queues"), queue)
            pipe.rpush(self.queue_key(queue), payload)
            pipe.execute()
        return job_id

    @store_operation("resque_pop")
    def pop(self, queue: str) -> dict[str, Any] | None:
        """Take the next payload off ``queue`` (used by tests and tooling)."""
        raw = self._store.client.lpop(self.queue_key(queue))
        if raw is None:
            return None
        return json.loads(raw)

    @store_operation("resque_size")
    def size(self, queue: str) -> int:
        return int(self._store.client.llen(self.queue_key(queue)))

    @store_operation("resque_queues")
    def queues(self) -> list[str]:
        return sorted(self._store.client.smembers(self._store.key("queues")))


__all__ = ["ReadyQueue", "ResqueQueue"]
