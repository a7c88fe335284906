"""spine-delayed -- future-dated jobs for Resque-style queues.

Jobs are put on a delayed schedule in Redis with :class:`Scheduler` and
moved to their ready-to-run queue by :class:`SchedulerWorker` once due.

Usage::

    from spine_delayed import RedisStore, ResqueQueue, Scheduler, SchedulerWorker

    store = RedisStore("redis://localhost:6379/0")
    scheduler = Scheduler(store)
    scheduler.enqueue_in(60, "email", "SendReminder", {"user_id": 42})

    SchedulerWorker(scheduler, ResqueQueue(store)).work()
"""

from spine_delayed.core.errors import (
    ConfigError,
    DelayedError,
    InvalidTimestampError,
    StoreUnavailableError,
    ValidationError,
)
from spine_delayed.core.events import Event, EventBus
from spine_delayed.queue import ReadyQueue, ResqueQueue
from spine_delayed.scheduling import JobDescriptor, Scheduler
from spine_delayed.store import RedisStore
from spine_delayed.worker import ControlChannel, SchedulerWorker, WorkerRegistry

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ControlChannel",
    "DelayedError",
    "Event",
    "EventBus",
    "InvalidTimestampError",
    "JobDescriptor",
    "ReadyQueue",
    "RedisStore",
    "ResqueQueue",
    "Scheduler",
    "SchedulerWorker",
    "StoreUnavailableError",
    "ValidationError",
    "WorkerRegistry",
    "__version__",
]
