"""Scheduler worker loop: moves due jobs from the schedule to their queues.

The worker polls the :class:`Scheduler` every ``interval`` seconds. Each
cycle drains every due timestamp bucket and forwards the jobs to the
:class:`ReadyQueue`, oldest timestamp first, FIFO within a timestamp.

Usage (programmatic)::

    from spine_delayed.store import RedisStore
    from spine_delayed.queue import ResqueQueue
    from spine_delayed.scheduling import Scheduler
    from spine_delayed.worker import SchedulerWorker

    store = RedisStore("redis://localhost:6379/0")
    worker = SchedulerWorker(Scheduler(store), ResqueQueue(store), interval=5)
    worker.work()  # blocking, runs until SIGTERM/SIGINT

Usage (CLI)::

    spine-delayed worker start --interval 5
"""

from __future__ import annotations

import os
import socket
import threading
import time
from datetime import UTC, datetime
from typing import Any

from spine_delayed.core.events import JOB_BEFORE_DISPATCH, EventBus
from spine_delayed.core.logging import LogContext, get_logger
from spine_delayed.queue import ReadyQueue
from spine_delayed.scheduling.scheduler import Scheduler

from .control import Control, ControlChannel, install_signal_handlers, restore_signal_handlers
from .registry import WorkerRegistry, make_worker_id
from .state import InFlightItem, WorkerInfo, WorkerState, WorkerStats, WorkerStatus

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SchedulerWorker:
    """Polls the delayed schedule and forwards due jobs downstream.

    Lifecycle::

        STARTING ──startup()──► RUNNING ⇄ PAUSED ──shutdown──► SHUTTING_DOWN ──► STOPPED

    Guarantees:
        - A job popped from the schedule is recorded as in flight (in memory
          and in the worker registry) until the ready queue accepted it.
        - Every way out of :meth:`work` (shutdown request, store error,
          Ctrl-C) first pushes an in-flight job back to its original
          timestamp, then unregisters the worker.
        - Control messages are read at the top of every cycle and before
          every pop, so a shutdown waits for at most one dispatch.

    Not guaranteed:
        - A ``SIGKILL`` between pop and dispatch loses the job from this
          worker; the next worker to start on the same host finds the dead
          registration and requeues its in-flight record.

    Args:
        scheduler: Schedule to drain.
        ready_queue: Where due jobs are forwarded.
        interval: Seconds to sleep when nothing is due.
        worker_id: Identifier in the registry. Defaults to
            ``<hostname>:<pid>:<random suffix>``.
        registry: Worker registry; defaults to one on the scheduler's store.
        control: Control channel; a private one is created if omitted.
        events: Optional bus; receives ``job.before_dispatch``.
        prune_on_start: Prune dead workers on this host during startup.
        handle_signals: Route OS signals into the control channel while
            :meth:`work` runs (main thread only).
    """

    def __init__(
        self,
        scheduler: Scheduler,
        ready_queue: ReadyQueue,
        *,
        interval: float = 5.0,
        worker_id: str | None = None,
        registry: WorkerRegistry | None = None,
        control: ControlChannel | None = None,
        events: EventBus | None = None,
        prune_on_start: bool = True,
        handle_signals: bool = True,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")

        self.scheduler = scheduler
        self.ready_queue = ready_queue
        self.interval = interval
        self.registry = registry or WorkerRegistry(scheduler.store)
        self.control = control or ControlChannel()
        self.events = events
        self.prune_on_start = prune_on_start
        self.handle_signals = handle_signals

        hostname = socket.gethostname()
        self._worker_id = worker_id or make_worker_id(hostname)
        self.state = WorkerState()
        self._stats = WorkerStats()
        self._monotonic_start: float | None = None
        self._previous_handlers: dict[int, Any] = {}
        self.info = WorkerInfo(
            worker_id=self._worker_id,
            pid=os.getpid(),
            hostname=hostname,
            started_at=_utcnow(),
            interval=interval,
        )

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def status(self) -> WorkerStatus:
        return self.info.status

    @property
    def jobs_dispatched(self) -> int:
        return self._stats.jobs_dispatched

    # ------------------------------------------------------------------ #
    # Control surface
    # ------------------------------------------------------------------ #

    def pause(self) -> None:
        """Keep polling on schedule but stop draining."""
        self.control.send(Control.PAUSE)

    def resume(self) -> None:
        self.control.send(Control.RESUME)

    def shutdown(self) -> None:
        """Request graceful shutdown; takes effect at the next poll point."""
        self.control.send(Control.SHUTDOWN)

    def reconnect(self) -> None:
        """Request a fresh store connection at the next poll point."""
        self.control.send(Control.RECONNECT)

    def get_stats(self) -> WorkerStats:
        """Current counters, including the pending schedule size."""
        if self._monotonic_start is not None:
            self._stats.uptime_seconds = time.monotonic() - self._monotonic_start
        self._stats.pending_timestamps = self.scheduler.get_delayed_queue_schedule_count()
        return self._stats

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def work(self) -> None:
        """Run the poll loop until shutdown (blocking).

        Raises:
            StoreUnavailableError: A store call failed. The termination
                path has run (as far as the store allowed) before this
                propagates.
        """
        with LogContext(worker_id=self._worker_id):
            if self.handle_signals:
                self._previous_handlers = install_signal_handlers(self.control)
            try:
                self.startup()
                while not self.state.shutting_down:
                    self.run_cycle()
                    if self.state.shutting_down:
                        break
                    self._sleep()
            finally:
                self._terminate()
                if self._previous_handlers:
                    restore_signal_handlers(self._previous_handlers)
                    self._previous_handlers = {}

    def start_background(self) -> threading.Thread:
        """Run :meth:`work` in a daemon thread (no signal handlers)."""
        self.handle_signals = False
        thread = threading.Thread(
            target=self.work,
            name=f"{self._worker_id}-loop",
            daemon=True,
        )
        thread.start()
        return thread

    def startup(self) -> None:
        """Prune dead registrations, register this worker, enter RUNNING."""
        self.info.status = WorkerStatus.STARTING
        logger.info("worker_starting", **self.info.to_dict())

        if self.prune_on_start:
            pruned = self.registry.prune_dead_workers(self.scheduler, hostname=self.info.hostname)
            if pruned:
                logger.info("dead_workers_pruned", count=len(pruned))

        self.info.started_at = _utcnow()
        self._monotonic_start = time.monotonic()
        self.registry.register(self._worker_id, self.info.started_at)
        self.info.status = WorkerStatus.PAUSED if self.state.paused else WorkerStatus.RUNNING
        logger.info("worker_started", status=self.info.status.value)

    def run_cycle(self) -> int:
        """One poll cycle. Returns the number of jobs dispatched."""
        self.process_control()
        self._stats.cycles += 1
        self._stats.last_poll_at = _utcnow()

        if self.state.shutting_down or self.state.paused:
            return 0
        return self.handle_delayed_items()

    # ------------------------------------------------------------------ #
    # Control handling
    # ------------------------------------------------------------------ #

    def process_control(self) -> None:
        """Apply every pending control message, oldest first."""
        for message in self.control.drain():
            if message is Control.SHUTDOWN:
                if not self.state.shutting_down:
                    logger.info("worker_shutdown_requested")
                self.state.shutting_down = True
                self.info.status = WorkerStatus.SHUTTING_DOWN
            elif message is Control.PAUSE:
                if not self.state.paused:
                    logger.info("worker_paused")
                self.state.paused = True
                if not self.state.shutting_down:
                    self.info.status = WorkerStatus.PAUSED
            elif message is Control.RESUME:
                if self.state.paused:
                    logger.info("worker_resumed")
                self.state.paused = False
                if not self.state.shutting_down:
                    self.info.status = WorkerStatus.RUNNING
            elif message is Control.RECONNECT:
                self.scheduler.store.reconnect()
                logger.info("worker_reconnected")

    def _should_stop_draining(self) -> bool:
        self.process_control()
        return self.state.shutting_down or self.state.paused

    # ------------------------------------------------------------------ #
    # Draining
    # ------------------------------------------------------------------ #

    def handle_delayed_items(self, at: Any = None) -> int:
        """Forward every job due up to ``at`` (default: now).

        Returns:
            Number of jobs dispatched.
        """
        dispatched = 0
        while not self._should_stop_draining():
            timestamp = self.scheduler.next_delayed_timestamp(at)
            if timestamp is None:
                break
            dispatched += self.enqueue_delayed_items_for_timestamp(timestamp)
        return dispatched

    def enqueue_delayed_items_for_timestamp(self, timestamp: int) -> int:
        """Drain the bucket at ``timestamp`` into the ready queue.

        Stops early (leaving the rest in the bucket) when a shutdown or
        pause request arrives.
        """
        dispatched = 0
        while not self._should_stop_draining():
            try:
                job = self.scheduler.next_item_for_timestamp(timestamp)
            except ValueError as exc:
                self._stats.items_invalid += 1
                logger.error("delayed_item_invalid", timestamp=timestamp, error=str(exc))
                continue

            if job is None:
                break

            self._dispatch(InFlightItem(timestamp=timestamp, job=job))
            dispatched += 1
        return dispatched

    def _dispatch(self, item: InFlightItem) -> None:
        self.state.in_flight = item
        self.registry.set_in_flight(self._worker_id, item)

        job = item.job
        if self.events is not None:
            self.events.emit(
                JOB_BEFORE_DISPATCH,
                "worker",
                at=item.timestamp,
                queue=job.queue,
                job_class=job.job_class,
                args=dict(job.args),
            )

        self.ready_queue.enqueue(job.queue, job.job_class, job.args)
        logger.info(
            "delayed_job_dispatched",
            timestamp=item.timestamp,
            queue=job.queue,
            job_class=job.job_class,
        )

        self.state.in_flight = None
        self._stats.jobs_dispatched += 1
        self.registry.clear_in_flight(self._worker_id)

    # ------------------------------------------------------------------ #
    # Sleep & termination
    # ------------------------------------------------------------------ #

    def _sleep(self) -> None:
        """Wait for the poll interval; returns early on a control message."""
        self.control.wait(self.interval)

    def _terminate(self) -> None:
        """Requeue the in-flight job, unregister, enter STOPPED.

        Runs for every exit from :meth:`work`. A store failure here is
        logged; the original exception (if any) is the one that propagates.
        """
        self.state.shutting_down = True
        self.info.status = WorkerStatus.SHUTTING_DOWN

        item = self.state.in_flight
        if item is not None:
            try:
                self.scheduler.delayed_push(item.timestamp, item.job)
                self.state.in_flight = None
                logger.warning(
                    "in_flight_job_requeued",
                    timestamp=item.timestamp,
                    queue=item.job.queue,
                    job_class=item.job.job_class,
                )
            except Exception:
                logger.exception(
                    "in_flight_job_requeue_failed",
                    timestamp=item.timestamp,
                    job=item.job.to_json(),
                )

        if self.state.in_flight is None:
            try:
                self.registry.unregister(self._worker_id)
            except Exception:
                logger.exception("worker_unregister_failed")
        else:
            # the registry record is the only copy left; a later prune requeues it
            logger.warning("worker_left_registered", in_flight=self.state.in_flight.to_json())

        self.info.status = WorkerStatus.STOPPED
        logger.info("worker_stopped", **self._stats.to_dict())


__all__ = ["SchedulerWorker"]
