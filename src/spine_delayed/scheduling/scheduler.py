"""Scheduler: put jobs on the delayed schedule and take them off again.

Manifesto:
    A job that should run later is stored under the second it becomes due.
    The scheduler keeps two structures in step: the schedule index (which
    seconds still hold jobs) and one bucket per second (the jobs, in the
    order they were enqueued). A timestamp is in the index iff its bucket is
    non-empty, so the worker never wakes up for an empty second.

Architecture:
    ::

        enqueue_at(at, queue, class, args)
            │  validate → to_timestamp → canonical JSON
            ▼
        MULTI
          RPUSH  resque:delayed:<at>              <job json>
          ZADD   resque:delayed_queue_schedule    <at> <at>
        EXEC
            │
            ▼
        events: job.scheduled

        next_delayed_timestamp(now)  → ZRANGEBYSCORE -inf now LIMIT 0 1
        next_item_for_timestamp(at)  → Lua: LPOP; if empty: DEL + ZREM

Examples:
    >>> store = RedisStore("redis://localhost:6379/0")
    >>> scheduler = Scheduler(store)
    >>> scheduler.enqueue_in(300, "email", "SendReminder", {"user_id": 42})
    >>> scheduler.get_delayed_queue_schedule_count()  # doctest: +SKIP
    1

Performance:
    - enqueue_at: one round-trip (pipeline)
    - next_delayed_timestamp: O(log N) in distinct pending timestamps
    - remove_delayed: O(total pending jobs); an administrative operation,
      not something to call per request

Tags:
    spine-delayed, scheduling, delayed-jobs, redis, resque

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from spine_delayed.core.events import JOB_SCHEDULED, EventBus
from spine_delayed.core.logging import get_logger
from spine_delayed.core.timestamps import now, to_delay, to_timestamp
from spine_delayed.store import RedisStore, store_operation

from .bucket import TimestampBucket
from .index import ScheduleIndex
from .job import JobDescriptor, make_job

logger = get_logger(__name__)


class Scheduler:
    """Delayed schedule over one :class:`RedisStore`.

    Args:
        store: Backing store. Several schedulers may share one store, and
            several processes may share one Redis database.
        events: Optional bus; receives ``job.scheduled`` after each enqueue.
        clock: Returns the current UNIX time in seconds.
    """

    def __init__(
        self,
        store: RedisStore,
        *,
        events: EventBus | None = None,
        clock: Callable[[], int] = now,
    ) -> None:
        self.store = store
        self.events = events
        self._clock = clock
        self.index = ScheduleIndex(store)

    def bucket(self, at: Any) -> TimestampBucket:
        return TimestampBucket(self.store, self.index, to_timestamp(at))

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------ #
    # Enqueue
    # ------------------------------------------------------------------ #

    def enqueue_at(
        self,
        at: Any,
        queue: str,
        job_class: str,
        args: Mapping[str, Any] | None = None,
    ) -> None:
        """Schedule a job to be queued at ``at`` (UNIX seconds or datetime).

        Raises:
            ValidationError: Empty ``job_class`` or ``queue``, bad ``args``.
            InvalidTimestampError: ``at`` is not convertible to whole seconds.
            StoreUnavailableError: Redis rejected the write.
        """
        job = make_job(queue, job_class, args)
        timestamp = to_timestamp(at)

        self.delayed_push(timestamp, job)
        logger.debug(
            "delayed_job_scheduled",
            timestamp=timestamp,
            queue=job.queue,
            job_class=job.job_class,
        )

        if self.events is not None:
            self.events.emit(
                JOB_SCHEDULED,
                "scheduler",
                at=timestamp,
                queue=job.queue,
                job_class=job.job_class,
                args=dict(job.args),
            )

    def enqueue_in(
        self,
        seconds: Any,
        queue: str,
        job_class: str,
        args: Mapping[str, Any] | None = None,
    ) -> None:
        """Schedule a job ``seconds`` from now. Same errors as :meth:`enqueue_at`."""
        make_job(queue, job_class, args)
        self.enqueue_at(self.now() + to_delay(seconds), queue, job_class, args)

    @store_operation("delayed_push")
    def delayed_push(self, at: Any, job: JobDescriptor) -> None:
        """Append an already-built job to the bucket at ``at``.

        The bucket append and the index insert go out as one MULTI/EXEC, so
        no reader ever sees the job without its index entry.
        """
        timestamp = to_timestamp(at)
        bucket = TimestampBucket(self.store, self.index, timestamp)

        with self.store.pipeline() as pipe:
            bucket.push(job.to_json(), pipe=pipe)
            self.index.add(timestamp, pipe=pipe)
            pipe.execute()

    # ------------------------------------------------------------------ #
    # Drain
    # ------------------------------------------------------------------ #

    def next_delayed_timestamp(self, at: Any = None) -> int | None:
        """First timestamp up to and including ``at`` (default: now).

        Jobs scheduled for a second the worker slept through are still
        returned, oldest first.
        """
        limit = self.now() if at is None else to_timestamp(at)
        return self.index.first_due(limit)

    def next_item_for_timestamp(self, at: Any) -> JobDescriptor | None:
        """Pop the head job of the bucket at ``at``, or ``None`` when empty.

        The pop is a single Lua script: concurrent callers never receive the
        same job, and the index entry disappears with the last job.

        Raises:
            ValueError: The popped entry is not a job descriptor. The entry is
                already gone from the schedule at that point.
        """
        raw = self.bucket(at).pop()
        if raw is None:
            return None
        return JobDescriptor.from_json(raw)

    # ------------------------------------------------------------------ #
    # Remove
    # ------------------------------------------------------------------ #

    @store_operation("scan")
    def _bucket_timestamps(self) -> list[int]:
        prefix = self.store.key("delayed", "")
        timestamps = []
        for key in self.store.client.scan_iter(match=prefix + "*"):
            suffix = key[len(prefix):]
            try:
                timestamps.append(int(suffix))
            except ValueError:
                logger.warning("delayed_key_unrecognized", key=key)
        return timestamps

    def remove_delayed(
        self,
        queue: str,
        job_class: str,
        args: Mapping[str, Any] | None = None,
    ) -> int:
        """Remove every scheduled occurrence of exactly this job.

        ``queue``, ``job_class`` and ``args`` must match what was enqueued.
        Every bucket is searched, so this is expensive on large schedules.

        Returns:
            Number of jobs removed (``0`` when nothing matched).
        """
        item = JobDescriptor(queue=queue, job_class=job_class, args=dict(args or {})).to_json()

        destroyed = 0
        for timestamp in self._bucket_timestamps():
            destroyed += TimestampBucket(self.store, self.index, timestamp).remove(item)

        if destroyed:
            logger.info("delayed_jobs_removed", queue=queue, job_class=job_class, count=destroyed)
        return destroyed

    def remove_delayed_job_from_timestamp(
        self,
        at: Any,
        queue: str,
        job_class: str,
        args: Mapping[str, Any] | None = None,
    ) -> int:
        """Remove exactly this job from the bucket at ``at``. Returns the count."""
        item = JobDescriptor(queue=queue, job_class=job_class, args=dict(args or {})).to_json()
        bucket = self.bucket(at)
        destroyed = bucket.remove(item)

        if destroyed:
            logger.info(
                "delayed_jobs_removed",
                timestamp=bucket.timestamp,
                queue=queue,
                job_class=job_class,
                count=destroyed,
            )
        return destroyed

    # ------------------------------------------------------------------ #
    # Inspect
    # ------------------------------------------------------------------ #

    def get_delayed_queue_schedule_count(self) -> int:
        """Number of distinct timestamps that still hold jobs."""
        return self.index.count()

    def get_delayed_timestamp_count(self, at: Any) -> int:
        """Number of jobs scheduled at ``at``."""
        return len(self.bucket(at))

    def delayed_timestamps(self, limit: int | None = None) -> list[tuple[int, int]]:
        """``(timestamp, job count)`` pairs in due order."""
        return [
            (timestamp, self.get_delayed_timestamp_count(timestamp))
            for timestamp in self.index.timestamps(limit)
        ]

    def peek(self, at: Any, limit: int | None = None) -> list[JobDescriptor]:
        """Jobs at ``at`` in dispatch order, without removing them."""
        return [JobDescriptor.from_json(raw) for raw in self.bucket(at).items(limit)]


__all__ = ["Scheduler"]
