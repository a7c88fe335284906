"""Scheduler worker: the poll loop, its control channel, and the worker registry."""

from .control import Control, ControlChannel, install_signal_handlers
from .loop import SchedulerWorker
from .registry import WorkerRegistry, make_worker_id, parse_worker_id
from .state import InFlightItem, WorkerInfo, WorkerState, WorkerStats, WorkerStatus

__all__ = [
    "Control",
    "ControlChannel",
    "InFlightItem",
    "SchedulerWorker",
    "WorkerInfo",
    "WorkerRegistry",
    "WorkerState",
    "WorkerStats",
    "WorkerStatus",
    "install_signal_handlers",
    "make_worker_id",
    "parse_worker_id",
]
