"""Worker state records shared by the loop and the registry."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from spine_delayed.scheduling.job import JobDescriptor


def _utcnow() -> datetime:
    return datetime.now(UTC)


class WorkerStatus(str, Enum):
    """Lifecycle of a scheduler worker.

    ``STARTING → RUNNING ⇄ PAUSED → SHUTTING_DOWN → STOPPED``
    """

    STARTING = "starting"
    RUNNING = "running"
    PAUSED = "paused"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@dataclass(frozen=True)
class InFlightItem:
    """A job popped from the schedule but not yet forwarded downstream."""

    timestamp: int
    job: JobDescriptor
    popped_at: datetime = field(default_factory=_utcnow)

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "job": self.job.to_dict(),
                "popped_at": self.popped_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> InFlightItem:
        data = json.loads(raw)
        return cls(
            timestamp=int(data["timestamp"]),
            job=JobDescriptor.from_json(json.dumps(data["job"])),
            popped_at=datetime.fromisoformat(data["popped_at"]),
        )


@dataclass
class WorkerState:
    """Mutable control state of one worker loop."""

    paused: bool = False
    shutting_down: bool = False
    in_flight: InFlightItem | None = None


@dataclass
class WorkerInfo:
    """Metadata about a running worker."""

    worker_id: str
    pid: int
    hostname: str
    started_at: datetime
    interval: float
    status: WorkerStatus = WorkerStatus.STARTING

    def to_dict(self) -> dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "pid": self.pid,
            "hostname": self.hostname,
            "started_at": self.started_at.isoformat(),
            "interval": self.interval,
            "status": self.status.value,
        }


@dataclass
class WorkerStats:
    """Counters exposed on the control surface."""

    jobs_dispatched: int = 0
    items_invalid: int = 0
    cycles: int = 0
    uptime_seconds: float = 0
    last_poll_at: datetime | None = None
    pending_timestamps: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs_dispatched": self.jobs_dispatched,
            "items_invalid": self.items_invalid,
            "cycles": self.cycles,
            "uptime_seconds": round(self.uptime_seconds, 2),
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
            "pending_timestamps": self.pending_timestamps,
        }


__all__ = [
    "InFlightItem",
    "WorkerInfo",
    "WorkerState",
    "WorkerStats",
    "WorkerStatus",
]
