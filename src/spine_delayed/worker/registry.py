"""Worker registry: which scheduler workers are alive, and what they hold.

Layout in Redis::

    <ns>schedulers                  SET     worker ids
    <ns>scheduler:<id>:started      STRING  ISO-8601 start time
    <ns>scheduler:<id>              STRING  JSON in-flight item (absent when idle)

Worker ids are ``<hostname>:<pid>:<suffix>``. A worker killed without
running its shutdown path stays registered; :meth:`prune_dead_workers`
finds those on the current host by checking their pid against the live
process list, puts their leftover in-flight job back on the schedule, and
unregisters them.
"""

from __future__ import annotations

import os
import socket
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import psutil

from spine_delayed.core.errors import StoreUnavailableError
from spine_delayed.core.logging import get_logger
from spine_delayed.store import RedisStore, store_operation

from .state import InFlightItem

if TYPE_CHECKING:
    from spine_delayed.scheduling.scheduler import Scheduler

logger = get_logger(__name__)


def make_worker_id(hostname: str | None = None, pid: int | None = None) -> str:
    hostname = hostname or socket.gethostname()
    pid = pid if pid is not None else os.getpid()
    return f"{hostname}:{pid}:{uuid.uuid4().hex[:8]}"


def parse_worker_id(worker_id: str) -> tuple[str, int] | None:
    """``(hostname, pid)`` of a worker id, or ``None`` if it is malformed."""
    parts = worker_id.rsplit(":", 2)
    if len(parts) != 3:
        return None
    hostname, pid, _ = parts
    try:
        return hostname, int(pid)
    except ValueError:
        return None


class WorkerRegistry:
    """Process-visible set of active scheduler workers."""

    def __init__(self, store: RedisStore) -> None:
        self._store = store
        self.key = store.key("schedulers")

    def _status_key(self, worker_id: str) -> str:
        return self._store.key("scheduler", worker_id)

    def _started_key(self, worker_id: str) -> str:
        return self._store.key("scheduler", worker_id, "started")

    # ------------------------------------------------------------------ #
    # Membership
    # ------------------------------------------------------------------ #

    @store_operation("register_worker")
    def register(self, worker_id: str, started_at: datetime) -> None:
        with self._store.pipeline() as pipe:
            pipe.sadd(self.key, worker_id)
            pipe.set(self._started_key(worker_id), started_at.isoformat())
            pipe.execute()

    @store_operation("unregister_worker")
    def unregister(self, worker_id: str) -> None:
        with self._store.pipeline() as pipe:
            pipe.srem(self.key, worker_id)
            pipe.delete(self._status_key(worker_id), self._started_key(worker_id))
            pipe.execute()

    @store_operation("list_workers")
    def all(self) -> list[str]:
        return sorted(self._store.client.smembers(self.key))

    @store_operation("worker_started_at")
    def started_at(self, worker_id: str) -> datetime | None:
        raw = self._store.client.get(self._started_key(worker_id))
        return datetime.fromisoformat(raw) if raw else None

    # ------------------------------------------------------------------ #
    # In-flight record
    # ------------------------------------------------------------------ #

    @store_operation("set_in_flight")
    def set_in_flight(self, worker_id: str, item: InFlightItem) -> None:
        self._store.client.set(self._status_key(worker_id), item.to_json())

    @store_operation("clear_in_flight")
    def clear_in_flight(self, worker_id: str) -> None:
        self._store.client.delete(self._status_key(worker_id))

    @store_operation("get_in_flight")
    def in_flight(self, worker_id: str) -> InFlightItem | None:
        return self._decode_in_flight(worker_id, self._store.client.get(self._status_key(worker_id)))

    @store_operation("take_in_flight")
    def take_in_flight(self, worker_id: str) -> InFlightItem | None:
        """Read and delete the in-flight record in one GETDEL.

        Of several concurrent callers at most one receives the record.
        """
        return self._decode_in_flight(worker_id, self._store.client.getdel(self._status_key(worker_id)))

    def _decode_in_flight(self, worker_id: str, raw: str | None) -> InFlightItem | None:
        if raw is None:
            return None
        try:
            return InFlightItem.from_json(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("in_flight_record_invalid", worker_id=worker_id, raw=raw)
            return None

    # ------------------------------------------------------------------ #
    # Housekeeping
    # ------------------------------------------------------------------ #

    def prune_dead_workers(
        self,
        scheduler: Scheduler,
        *,
        hostname: str | None = None,
        pid_exists: Callable[[int], bool] = psutil.pid_exists,
    ) -> list[str]:
        """Unregister workers on this host whose process no longer exists.

        A dead worker's in-flight job is pushed back onto the schedule at its
        original timestamp first (it may already have reached the queue, so
        this can deliver it twice).

        Returns:
            The pruned worker ids.
        """
        hostname = hostname or socket.gethostname()
        own_pid = os.getpid()
        pruned = []

        for worker_id in self.all():
            parsed = parse_worker_id(worker_id)
            if parsed is None:
                continue
            worker_host, pid = parsed
            if worker_host != hostname or pid == own_pid or pid_exists(pid):
                continue

            item = self.take_in_flight(worker_id)
            if item is not None:
                try:
                    scheduler.delayed_push(item.timestamp, item.job)
                except StoreUnavailableError:
                    # the record is the only copy left
                    self.set_in_flight(worker_id, item)
                    raise
                logger.warning(
                    "dead_worker_job_requeued",
                    worker_id=worker_id,
                    timestamp=item.timestamp,
                    queue=item.job.queue,
                    job_class=item.job.job_class,
                )

            self.unregister(worker_id)
            pruned.append(worker_id)
            logger.info("dead_worker_pruned", worker_id=worker_id, pid=pid)

        return pruned


__all__ = ["WorkerRegistry", "make_worker_id", "parse_worker_id"]
